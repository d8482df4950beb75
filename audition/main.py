from .interface.api.main import create_app

# Entry point for `uvicorn audition.main:app`
app = create_app()
