"""Main FastAPI application entry point."""
import logging
import os
import re
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, BackgroundTasks, HTTPException, Body
from fastapi.responses import HTMLResponse, JSONResponse, FileResponse
from fastapi.middleware.cors import CORSMiddleware
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import (
    get_settings,
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_RUNNING,
    STATUS_TERMINATED,
    STATUS_TERMINATING,
)
from exceptions import ProcessNotFoundError
from models import RunData
from services.describe_service import DescribeService
from services.file_service import FileService
from services.reference_service import ReferenceCache, ReferenceService
from services.salesforce_service import SalesforceService
from utils import create_run_data

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
settings = get_settings()
app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup templates
TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
templates = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"])
)

# Initialize services
reference_cache = ReferenceCache()
reference_service = ReferenceService(settings.doc_dir, reference_cache)

# Store describe runs and their logs
processes: Dict[str, RunData] = {}
running_flags: Dict[str, bool] = {}


def add_log(run_id: str, message: str) -> None:
    """
    Add a log message to the run logs.

    Args:
        run_id: Run identifier
        message: Log message to add
    """
    if run_id in processes:
        processes[run_id]['logs'].append(message)
        # Keep only last N log entries
        max_entries = settings.max_log_entries
        if len(processes[run_id]['logs']) > max_entries:
            processes[run_id]['logs'] = processes[run_id]['logs'][-max_entries:]


def get_run(run_id: str) -> RunData:
    """
    Look up a describe run.

    Raises:
        ProcessNotFoundError: If no run has this ID
    """
    if run_id not in processes:
        raise ProcessNotFoundError(f"Run not found: {run_id}")
    return processes[run_id]


def run_describe_task(run_id: str, options: Dict[str, Any]) -> None:
    """
    Background task running a describe pass and exporting the fields CSV.

    Args:
        run_id: Run identifier
        options: Overrides of the configured run settings
    """
    running_flags[run_id] = True
    processes[run_id]['status'] = STATUS_RUNNING

    merge_with_docs = options.get('merge_with_docs', settings.merge_with_docs)
    output_dir = settings.doc_dir if merge_with_docs else settings.output_dir

    def should_continue() -> bool:
        """Check if processing should continue."""
        return running_flags.get(run_id, False)

    def log_progress(message: str) -> None:
        """Log progress messages to the run."""
        add_log(run_id, message)

    try:
        add_log(run_id, "Starting describe run...")
        describe_service = DescribeService(SalesforceService(settings))
        summary = describe_service.fetch_and_save(
            output_dir,
            objects=options.get('objects') or settings.objects,
            merge_with_docs=merge_with_docs,
            batch_size=settings.batch_size,
            resume=options.get('resume', settings.resume),
            start_from_index=options.get('start_from_index', settings.start_from_index),
            skip_custom_objects=options.get('skip_custom_objects', settings.skip_custom_objects),
            checkpoint_every=settings.checkpoint_every,
            rate_limit_pause=settings.rate_limit_pause,
            should_continue=should_continue,
            log_callback=log_progress,
        )
        processes[run_id]['summary'] = summary

        if not summary['completed']:
            add_log(run_id, "Run terminated by user.")
            processes[run_id]['status'] = STATUS_TERMINATED
            return

        file_service = FileService(output_dir)
        if merge_with_docs:
            file_service.rebuild_index()
            add_log(run_id, "Index rebuilt.")
            reference_service.clear_cache()

        csv_file = file_service.export_fields_csv()
        processes[run_id]['csv_file'] = csv_file
        add_log(run_id, f"Field metadata saved to {csv_file}")

        add_log(run_id, "Describe run completed successfully!")
        processes[run_id]['status'] = STATUS_COMPLETED

    except Exception as e:
        logger.exception(f"Error in run {run_id}: {e}")
        add_log(run_id, f"An error occurred: {e}")
        processes[run_id]['status'] = STATUS_ERROR
        processes[run_id]['error'] = str(e)
    finally:
        running_flags[run_id] = False


@app.exception_handler(ProcessNotFoundError)
async def run_not_found_handler(request: Request, exc: ProcessNotFoundError) -> JSONResponse:
    return JSONResponse({"detail": str(exc)}, status_code=404)


def _search(pattern: str, by_description: bool = False) -> List[Dict[str, Any]]:
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise HTTPException(status_code=400, detail=f"Invalid search pattern: {e}")
    if by_description:
        return reference_service.search_objects_by_description(regex)
    return reference_service.search_objects(regex)


# Route handlers
@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request, search: Optional[str] = None) -> HTMLResponse:
    """Render the object list, optionally filtered by name."""
    if search:
        objects = _search(search)
    else:
        descriptions = reference_service.load_all_descriptions() or {}
        objects = [{'name': name, **summary} for name, summary in sorted(descriptions.items())]

    template = templates.get_template("objects.html")
    return HTMLResponse(content=template.render(
        request=request,
        title=settings.app_name,
        objects=objects,
        search=search or '',
    ))


@app.get("/objects/{object_name}", response_class=HTMLResponse)
async def object_page(request: Request, object_name: str) -> HTMLResponse:
    """Render the fields of one object."""
    document = reference_service.get_object(object_name)
    if document is None:
        raise HTTPException(status_code=404, detail="Object not found")

    template = templates.get_template("object_detail.html")
    return HTMLResponse(content=template.render(
        request=request,
        title=settings.app_name,
        name=object_name,
        document=document,
        properties=sorted((document.get('properties') or {}).items()),
        required=set(document.get('required') or []),
    ))


@app.get("/api/index")
async def get_index() -> JSONResponse:
    """Return the store index."""
    index = reference_service.load_index()
    if index is None:
        raise HTTPException(status_code=404, detail="Index not found")
    return JSONResponse(index)


@app.get("/api/objects")
async def list_objects(search: Optional[str] = None) -> JSONResponse:
    """
    List indexed objects.

    Args:
        search: Case-insensitive pattern matched against object names

    Returns:
        Search hits when a pattern is given, otherwise every object name
    """
    if search:
        return JSONResponse({"objects": _search(search)})
    return JSONResponse({"objects": reference_service.get_all_object_names()})


@app.get("/api/objects/search-description")
async def search_descriptions(pattern: str) -> JSONResponse:
    """Objects whose description matches a case-insensitive pattern."""
    return JSONResponse({"objects": _search(pattern, by_description=True)})


@app.get("/api/objects/{object_name}")
async def get_object(object_name: str) -> JSONResponse:
    """Return the full document of one object."""
    document = reference_service.get_object(object_name)
    if document is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return JSONResponse(document)


@app.get("/api/objects/{object_name}/description")
async def get_object_description(object_name: str) -> JSONResponse:
    """Return description, field count and label of one object."""
    description = reference_service.get_object_description(object_name)
    if description is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return JSONResponse(description)


@app.post("/api/cache/clear")
async def clear_cache() -> JSONResponse:
    """Drop cached index and objects so the next lookup reads the store again."""
    reference_service.clear_cache()
    return JSONResponse({"status": "cleared"})


@app.post("/runs")
async def start_run(
    background_tasks: BackgroundTasks,
    options: Optional[Dict[str, Any]] = Body(None)
) -> JSONResponse:
    """
    Start a describe run in the background.

    Args:
        background_tasks: Background tasks manager
        options: Optional overrides: objects, merge_with_docs, resume,
            start_from_index, skip_custom_objects

    Returns:
        JSON response with run ID and status
    """
    options = options or {}
    objects = options.get('objects')
    if objects is not None and (
        not isinstance(objects, list) or not all(isinstance(name, str) and name for name in objects)
    ):
        raise HTTPException(status_code=400, detail="objects must be a list of object names")

    start_from_index = options.get('start_from_index')
    if start_from_index is not None and (not isinstance(start_from_index, int) or start_from_index < 0):
        raise HTTPException(status_code=400, detail="start_from_index must be a non-negative integer")

    run_id = str(uuid.uuid4())
    processes[run_id] = create_run_data()
    logger.info(f"Starting describe run {run_id}")

    background_tasks.add_task(run_describe_task, run_id, options)
    return JSONResponse({"run_id": run_id, "status": "started"})


@app.get("/runs/{run_id}")
async def get_run_status(run_id: str) -> JSONResponse:
    """
    Get the status and logs of a run.

    Args:
        run_id: Run identifier

    Returns:
        JSON response with run status and data
    """
    run_data = dict(get_run(run_id))

    if run_data.get('csv_file'):
        run_data['has_csv_file'] = True
        run_data['csv_filename'] = os.path.basename(run_data['csv_file'])

    return JSONResponse(run_data)


@app.post("/runs/{run_id}/terminate")
async def terminate_run(run_id: str) -> JSONResponse:
    """
    Terminate a running describe run.

    Args:
        run_id: Run identifier

    Returns:
        JSON response with termination status
    """
    get_run(run_id)
    if not running_flags.get(run_id):
        raise HTTPException(status_code=409, detail="Run is not running")

    running_flags[run_id] = False
    add_log(run_id, "Terminate request received.")
    processes[run_id]['status'] = STATUS_TERMINATING

    return JSONResponse({"status": "terminated"})


@app.get("/runs/{run_id}/download")
async def download_csv(run_id: str) -> FileResponse:
    """
    Download the fields CSV of a completed run.

    Raises:
        HTTPException: If the run has no CSV file
    """
    file_path = get_run(run_id).get('csv_file')
    if not file_path or not FileService.file_exists(file_path):
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(
        path=file_path,
        filename=os.path.basename(file_path),
        media_type='text/csv'
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", settings.port))
    uvicorn.run(app, host=settings.host, port=port)
