import uvicorn

from video_snipper.config import settings


def main() -> None:
    """Run the API server with uvicorn."""
    uvicorn.run(
        "video_snipper.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )


if __name__ == "__main__":
    main()
