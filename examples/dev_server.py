# Dev server example

import asyncio
from remote_sandbox import Port, SandboxClient, SandboxError, SandboxSpec

async def main():
    # Credential is resolved from the CLI session, .env or SANDBOX_* variables
    async with SandboxClient() as client:
        try:
            sandbox = await client.sandboxes.create_if_not_exists(
                SandboxSpec(name="demo-app", ports=[Port(target=3000)], labels={"example": "dev-server"})
            )
            print(f"✓ Sandbox ready: {sandbox.name} ({sandbox.url})")

            await sandbox.fs.write(
                "/app/server.py",
                "import http.server\n"
                "http.server.test(HandlerClass=http.server.SimpleHTTPRequestHandler, port=3000)\n",
            )

            server = await sandbox.process.exec(
                command="python server.py",
                name="dev-server",
                working_dir="/app",
                wait_for_ports=[3000],
                timeout=120,
                restart_on_failure=True,
                max_restarts=3,
            )
            print(f"✓ Server {server.name} is {server.status.value}")

            preview = await sandbox.previews.create_if_not_exists(name="web", port=3000)
            print(f"✓ Preview: {preview.url}")

            matches = await sandbox.fs.grep("http.server", path="/app", include="*.py")
            for match in matches:
                print(f"  {match.path}:{match.line}: {match.text}")

            # The server keeps running after the client closes
            await server.stop_supervising()

        except SandboxError as e:
            print(f"\n❗ Error: {e}")

if __name__ == "__main__":
    asyncio.run(main())
