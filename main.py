from fastapi import FastAPI, File, Form, UploadFile, Depends, Request
import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from course_module_process import ModuleProcessor
from module_store import ModuleStore
from schemas import SubmitCourseRequest

settings = get_settings()

# Create logs directory if it doesn't exist
os.makedirs(settings.LOG_DIR, exist_ok=True)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Add file handler to write logs to file
log_file_path = os.path.join(settings.LOG_DIR, f"app_{datetime.now().strftime('%Y%m%d')}.log")
file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
logging.getLogger().addHandler(file_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Open the module store once for the whole process.

    An unreachable storage backend stops startup; there is no retry.
    """
    logger.info(f"Starting {settings.API_TITLE} v{settings.API_VERSION}")
    store = ModuleStore.from_url(settings.DATABASE_URL, echo=settings.DB_ECHO)
    try:
        store.ping()
        store.create_schema()
    except Exception as e:
        logger.critical(f"Storage backend initialization failed: {e}")
        raise

    logger.info(f"Database: {settings.DATABASE_URL.split('@')[-1]}")  # Hide credentials
    app.state.module_store = store

    yield

    logger.info("Shutting down application")
    store.engine.dispose()


# Initialize FastAPI app with metadata
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_module_store(request: Request) -> ModuleStore:
    """Module store opened in the application lifespan."""
    return request.app.state.module_store


# API Endpoints
@app.post(
    "/modules/",
    tags=["Course Modules"]
)
async def submit_course(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    bannerImage: Optional[str] = Form(None),
    store: ModuleStore = Depends(get_module_store)
):
    """
    Upload a course spreadsheet and store it as a module document.

    The first sheet must carry the columns "Submodule Title", "Section Title",
    "Section Content", "Video Link", "Section Time (minutes)", "Example" and
    "Image Link". A course with the same derived id is replaced entirely.

    Returns:
        dict: JSON response with:
            - message: Confirmation text
            - module: title, totalSubmodules and totalTime of the stored module
    """
    file_content = await file.read() if file is not None else None
    course_request = SubmitCourseRequest(
        file_content=file_content,
        filename=file.filename if file is not None else None,
        title=title,
        description=description,
        banner_image=bannerImage
    )

    result = await run_in_threadpool(ModuleProcessor.submit_course, course_request, store)

    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())
    return {
        "message": "File uploaded and data saved successfully.",
        "module": result.data.model_dump(by_alias=True)
    }


@app.get(
    "/modules/courses",
    tags=["Course Modules"]
)
async def list_courses(store: ModuleStore = Depends(get_module_store)):
    """
    List every stored course.

    Returns:
        dict: JSON response with:
            - message: Confirmation text
            - courses: title, id, moduleId, description, chapters, time and image per course
    """
    result = await run_in_threadpool(ModuleProcessor.list_courses, store)

    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())
    return {
        "message": "Course details fetched successfully.",
        "courses": [course.model_dump(by_alias=True) for course in result.data]
    }


# Run the application if executed directly
if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Course Module API in development mode.")
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=settings.RELOAD)
