#!/usr/bin/env python3
"""
Main entry point for running the CineFeed Flask application.

Gunicorn: gunicorn "run:app"
"""

from cinefeed.app import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
