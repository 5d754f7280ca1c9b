"""palettekit — FastAPI HTTP layer.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic response models.
"""
