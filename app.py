"""Hugging Face Spaces entry point."""

from epsilon_pipeline.config import AppConfig
from epsilon_pipeline.logs import configure_logging
from epsilon_pipeline.visualization.dash_app import create_app

config = AppConfig.from_env()
configure_logging(config.log_level)
app = create_app(config)
server = app.server  # expose Flask server for gunicorn fallback

if __name__ == "__main__":
    app.run(host=config.host, debug=config.debug, port=config.port)
