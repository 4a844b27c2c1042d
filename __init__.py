"""
Course Module Upload Application

This package provides an API that turns course spreadsheets into stored
module documents (module -> submodules -> sections) and lists the stored
courses.

Key modules:
- main.py: FastAPI application with API endpoints
- course_module_process.py: Spreadsheet decoding and module aggregation
- module_store.py: SQLAlchemy storage for module documents
- schemas.py: Pydantic models for modules, submodules and sections
- config.py: Settings loaded from the environment
- utils/result.py: Result pattern implementation for error handling
"""
