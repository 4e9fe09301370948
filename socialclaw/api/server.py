"""Uvicorn server entrypoint for SocialClaw.

This script runs the FastAPI app factory with:
- host 0.0.0.0
- port from environment variable PORT (default 3000)

Usage:
    python -m socialclaw.api.server
"""
import os
import uvicorn


# PUBLIC_INTERFACE
def main() -> None:
    """Run the FastAPI server with the configured host and port."""
    port = int(os.environ.get("PORT", "3000"))
    uvicorn.run("socialclaw.api.main:create_app", factory=True, host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    main()
