"""SaveVibe personal finance backend.

This package contains the REST API, storage backings and the spending
classification/insight services.  See ``app.py`` for the FastAPI
application factory and ``seed_db.py`` for loading demo data.
"""
