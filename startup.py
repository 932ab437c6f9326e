"""
Startup script for running the webhook dispatcher
with its in-process delivery pool.
"""
import os
import sys
import uvicorn
import logging
import argparse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("startup")

def main():
    """Main entry point for the application."""
    parser = argparse.ArgumentParser(description="Run the webhook dispatcher")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")), 
                        help="Port to run the server on")
    parser.add_argument("--host", type=str, default="0.0.0.0", 
                        help="Host to run the server on")
    parser.add_argument("--workers", type=int, default=1, 
                        help="Number of server processes (each runs its own dispatcher)")
    
    args = parser.parse_args()
    
    if args.workers != 1:
        logger.warning("Each server process runs an independent dispatcher; events are not shared")
    logger.info(f"Starting webhook dispatcher on {args.host}:{args.port}")
    
    uvicorn.run(
        "bruin_webhooks.main:app",
        host=args.host,
        port=args.port,
        workers=args.workers,
        log_level="info"
    )

if __name__ == "__main__":
    main()
