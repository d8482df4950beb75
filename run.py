import uvicorn
import sys
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.absolute())
sys.path.insert(0, project_root)

if __name__ == "__main__":
    from audition.core.config import get_settings

    settings = get_settings()
    settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

    # Run the reference audition backend
    uvicorn.run(
        "audition.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
