"""HTTP API: a REST proxy over ClickUp plus the change log and daily report"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from taskpulse import __version__
from taskpulse.exceptions import TaskPulseError, ValidationError
from taskpulse.interfaces.context import AppContext, build_context
from taskpulse.logging import configure_logging, get_logger

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}
EMPTY_LOG = "# Task Changes Log\n\nNo changes recorded yet.\n"

logger = get_logger(__name__)


def _mutation_payload(result, message: str) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "success": True,
        "task": result.task.to_dict(),
        "message": message,
    }
    if result.review_task is not None:
        payload["reviewTask"] = result.review_task.to_dict()
    if result.warning:
        payload["warning"] = result.warning
    return payload


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Create FastAPI application."""
    ctx = context or build_context()

    app = FastAPI(
        title="TaskPulse API",
        description="ClickUp task dashboard backend with change log and daily review report",
        version=__version__,
    )
    app.state.context = ctx

    @app.exception_handler(TaskPulseError)
    async def handle_taskpulse_error(request: Request, exc: TaskPulseError) -> JSONResponse:
        logger.error("request.failed", path=request.url.path, error=str(exc), kind=type(exc).__name__)
        body: Dict[str, Any] = {"error": exc.user_message}
        if isinstance(exc, ValidationError):
            body["field"] = exc.field
        return JSONResponse(body, status_code=exc.status_code)

    # -- tasks ----------------------------------------------------------

    @app.get("/api/tasks")
    def list_tasks(include_comments: bool = Query(False, alias="includeComments")) -> Dict[str, Any]:
        tasks = ctx.service.list_tasks_for_ui(include_comments=include_comments)
        return {
            "success": True,
            "tasks": tasks,
            "totalTasks": len(tasks),
            "totalSubtasks": sum(len(task["subtasks"]) for task in tasks),
        }

    @app.get("/api/tasks/developers")
    def list_developers() -> Dict[str, Any]:
        return {"success": True, "developers": ctx.service.list_developers()}

    @app.post("/api/tasks/create")
    def create_task(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        result = ctx.service.create_task(payload)
        return _mutation_payload(result, "Subtask created successfully under Review")

    @app.get("/api/tasks/{task_id}")
    def get_task(task_id: str) -> Dict[str, Any]:
        return {"task": ctx.service.get_task(task_id), "message": "Task fetched successfully"}

    @app.put("/api/tasks/{task_id}")
    def update_task(task_id: str, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        result = ctx.service.update_task(task_id, payload)
        return _mutation_payload(result, "Task updated successfully")

    @app.get("/api/lists")
    def list_lists() -> Dict[str, Any]:
        return {"success": True, **ctx.service.list_hierarchy()}

    # -- report ---------------------------------------------------------

    @app.get("/api/llm-report")
    def llm_report(download: bool = Query(False)):
        report = ctx.build_report()
        if download:
            return Response(
                report.markdown,
                media_type="text/markdown",
                headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
            )
        return report.to_envelope()

    @app.get("/api/llm-report/slack")
    def llm_report_slack() -> Dict[str, Any]:
        report = ctx.build_report()
        return {"message": report.chat_message, "stats": report.stats.to_dict()}

    @app.get("/api/llm-prompt")
    def get_prompt() -> Dict[str, Any]:
        return {"prompt": ctx.prompt_store.get_prompt(), "isCustom": ctx.prompt_store.is_custom()}

    @app.post("/api/llm-prompt")
    def set_prompt(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        ctx.prompt_store.set_prompt(payload.get("prompt"))
        return {"success": True}

    # -- change log -----------------------------------------------------

    @app.get("/api/logs/markdown")
    def logs_markdown() -> Response:
        content = ctx.store.read_all()
        if not content.strip():
            content = EMPTY_LOG
        return Response(
            content,
            media_type="text/markdown; charset=utf-8",
            headers={
                **NO_CACHE,
                "Content-Disposition": f'inline; filename="{ctx.store.key}.md"',
                "X-Content-Type-Options": "nosniff",
            },
        )

    @app.get("/api/logs/update")
    def logs_update_status() -> Dict[str, Any]:
        metadata = ctx.store.metadata()
        return {
            "updateAvailable": True,
            "storageType": metadata.source,
            "environment": ctx.config.storage.environment,
            "filename": metadata.key,
        }

    @app.put("/api/logs/update")
    def logs_update(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        content = payload.get("content")
        if not isinstance(content, str):
            raise ValidationError("content", "Invalid content: must be a string")
        ctx.store.overwrite(content)
        return {
            "success": True,
            "message": "Logs updated successfully",
            "size": len(content),
            "filename": ctx.store.key,
        }

    @app.get("/api/storage-status")
    def storage_status() -> JSONResponse:
        return JSONResponse(ctx.service.storage_status(), headers=NO_CACHE)

    @app.post("/api/storage-status")
    def storage_test_entry() -> Dict[str, Any]:
        status = ctx.service.write_test_entry()
        return {"success": True, "message": "Test log entry created", **status}

    return app


def main() -> None:  # pragma: no cover - manual execution
    import uvicorn

    configure_logging()
    context = build_context()
    uvicorn.run(create_app(context), host=context.config.server.host, port=context.config.server.port)
