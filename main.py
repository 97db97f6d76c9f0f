"""Launch the pipeline topology FastAPI server."""

import uvicorn

from pipeline_topology.config import configure_logging, get_settings


def main():
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "pipeline_topology.server:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
