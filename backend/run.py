"""
RYLS Backend — Uvicorn Launcher

Usage:
    python run.py
    python run.py --port 8000 --reload
"""
import argparse
import uvicorn

from ryls_api.config import get_settings


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="RYLS Registration & Payment Backend Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")
    parser.add_argument("--workers", type=int, default=1, help="Number of workers (default: 1)")
    args = parser.parse_args()

    # Order id and webhook locks are per process; with several workers only
    # the unique order_id index serializes allocation.
    if args.workers > 1:
        print(f"  [!] {args.workers} workers: order ids rely on the database unique index")

    print(f"""
    ========================================================
      {settings.APP_NAME} v{settings.APP_VERSION}
      Midtrans: {settings.MIDTRANS_MODE}
      Docs:     http://localhost:{args.port}/docs
      Webhook:  http://localhost:{args.port}/api/payments/notifications
    ========================================================
    """)

    uvicorn.run(
        "ryls_api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=args.workers,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
