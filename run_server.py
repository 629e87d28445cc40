#!/usr/bin/env python3
"""Run the Loop Habits web server."""
import logging

from dotenv import load_dotenv
load_dotenv()

from habits.config import settings


def main():
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    host = settings.API_HOST
    port = settings.API_PORT
    reload = settings.API_RELOAD

    print(f"""
    ╔═══════════════════════════════════════════════════════╗
    ║           Loop Habits Server                          ║
    ╠═══════════════════════════════════════════════════════╣
    ║  URL: http://{host}:{port:<5}                            ║
    ║  API Docs: http://{host}:{port:<5}/docs                  ║
    ║  Database: {settings.DATABASE_PATH.name:<20}                       ║
    ║  Hot Reload: {str(reload):<5}                              ║
    ╚═══════════════════════════════════════════════════════╝
    """)

    uvicorn.run(
        "server.app:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    main()
