from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from models.timeline_models import (
    CompositionFilters,
    ModifyItemRequest,
    PlaceAssetRequest,
    ReorderRequest,
)
from operators.timeline_editor import (
    apply_composition_filters,
    clear_composition_filters,
    modify_asset,
    place_asset,
    remove_item,
    reorder_items,
)
from operators.timeline_operator import (
    AssetNotFoundError,
    CheckpointNotFoundError,
    InvalidOperationError,
    ItemNotFoundError,
    TimelineError,
    TimelineStoreError,
    TrackConflictError,
    TrackNotFoundError,
    VersionConflictError,
    get_timeline_snapshot_by_project,
)
from operators.timeline_utils import build_render_payload, format_duration

from .types import ErrorSeverity, ToolError

logger = logging.getLogger(__name__)

DEFAULT_TOOL_ACTOR = "agent:timeline_tools"


_OVERLAY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Position and size in the 1920x1080 canvas (video tracks only).",
    "properties": {
        "x": {"type": "number"},
        "y": {"type": "number"},
        "width": {"type": "number"},
        "height": {"type": "number"},
        "z_index": {"type": "integer"},
    },
}

_FILTER_PROPERTIES: dict[str, Any] = {
    "contrast": {"type": "number", "minimum": 0.5, "maximum": 2.0},
    "saturation": {"type": "number", "minimum": 0, "maximum": 3.0},
    "brightness": {"type": "number", "minimum": 0.5, "maximum": 2.0},
    "hue_rotate": {"type": "number", "minimum": -180, "maximum": 180},
    "sepia": {"type": "number", "minimum": 0, "maximum": 1},
    "grayscale": {"type": "number", "minimum": 0, "maximum": 1},
    "invert": {"type": "number", "minimum": 0, "maximum": 1},
    "blur": {"type": "number", "minimum": 0, "maximum": 10},
}

TIMELINE_TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "get_timeline",
            "description": "Get the current timeline in the renderer format (camelCase keys).",
            "parameters": {"type": "object", "properties": {}},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "place_asset",
            "description": (
                "Place a project asset on the timeline. If the preferred track is "
                "occupied the first free track of the kind is used, or a new track "
                "is created."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "asset_id": {"type": "string"},
                    "start_time": {"type": "number", "minimum": 0},
                    "end_time": {"type": "number"},
                    "track_kind": {"type": "string", "enum": ["video", "audio"]},
                    "track_index": {"type": "integer", "minimum": 1},
                    "overlay": _OVERLAY_SCHEMA,
                    "volume": {"type": "number", "minimum": 0, "maximum": 2},
                    "opacity": {"type": "number", "minimum": 0, "maximum": 1},
                    "asset_start_time": {"type": "number", "minimum": 0},
                    "asset_end_time": {"type": "number"},
                },
                "required": ["asset_id", "start_time", "track_kind"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "modify_asset",
            "description": (
                "Change timing, trim window, overlay, volume, opacity or track of an "
                "item already on the timeline. Only the given fields change."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "item_id": {"type": "string"},
                    "start_time": {"type": "number", "minimum": 0},
                    "end_time": {"type": "number"},
                    "asset_start_time": {"type": "number", "minimum": 0},
                    "asset_end_time": {"type": "number"},
                    "overlay": _OVERLAY_SCHEMA,
                    "volume": {"type": "number", "minimum": 0, "maximum": 2},
                    "opacity": {"type": "number", "minimum": 0, "maximum": 1},
                    "move_to_track_id": {"type": "string"},
                    "move_to_track_kind": {"type": "string", "enum": ["video", "audio"]},
                },
                "required": ["item_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "remove_timeline_item",
            "description": "Delete an item from the timeline by id.",
            "parameters": {
                "type": "object",
                "properties": {"item_id": {"type": "string"}},
                "required": ["item_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "reorder_timeline_items",
            "description": (
                "Reorder items within one track (item_order) or across tracks "
                "(track_assignments). Overlaps are reported in 'conflicts', not fixed."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "reordering_type": {
                        "type": "string",
                        "enum": ["within_track", "across_tracks"],
                    },
                    "track_id": {"type": "string"},
                    "item_order": {"type": "array", "items": {"type": "string"}},
                    "track_assignments": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "item_id": {"type": "string"},
                                "track_id": {"type": "string"},
                                "position": {"type": "integer", "minimum": 0},
                            },
                            "required": ["item_id", "track_id", "position"],
                        },
                    },
                    "timing_mode": {
                        "type": "string",
                        "enum": ["maintain_original", "sequential", "preserve_gaps"],
                        "default": "maintain_original",
                    },
                    "gap_duration": {"type": "number", "minimum": 0, "default": 0},
                },
                "required": ["reordering_type"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "apply_composition_filters",
            "description": (
                "Apply whole-composition filters. Omitted filters keep their "
                "current value."
            ),
            "parameters": {"type": "object", "properties": _FILTER_PROPERTIES},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "clear_composition_filters",
            "description": "Remove every composition filter.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]


_ERROR_HINTS: dict[str, tuple[ErrorSeverity, str | None]] = {
    "UNKNOWN_TOOL": (ErrorSeverity.USER_INPUT, "Use a tool name from the tool list."),
    "VALIDATION_ERROR": (
        ErrorSeverity.VALIDATION,
        "Check the tool schema for required fields and valid types.",
    ),
    "INVALID_OPERATION": (
        ErrorSeverity.VALIDATION,
        "Adjust the arguments; nothing was changed.",
    ),
    "TRACK_CONFLICT": (
        ErrorSeverity.STATE_MISMATCH,
        "Pick another start time or track, or use move_to_track_kind to get a free track.",
    ),
    "NOT_FOUND": (
        ErrorSeverity.USER_INPUT,
        "Use get_timeline to find valid item and track IDs.",
    ),
    "VERSION_CONFLICT": (
        ErrorSeverity.STATE_MISMATCH,
        "Timeline changed. Refresh with get_timeline and retry.",
    ),
    "STORE_ERROR": (
        ErrorSeverity.RECOVERABLE,
        "Temporary storage issue. Retry the operation.",
    ),
    "UNKNOWN_ERROR": (ErrorSeverity.SYSTEM, None),
}


def _create_tool_error(
    code: str,
    message: str,
    context: dict[str, Any] | None = None,
    affected_field: str | None = None,
) -> dict[str, Any]:
    severity, hint = _ERROR_HINTS.get(code, _ERROR_HINTS["UNKNOWN_ERROR"])
    error = ToolError(
        severity=severity,
        code=code,
        message=message,
        recovery_hint=hint,
        affected_field=affected_field,
        context=context or {},
    )
    return error.to_response()


def _categorize_exception(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "VALIDATION_ERROR"
    if isinstance(exc, TrackConflictError):
        return "TRACK_CONFLICT"
    if isinstance(exc, InvalidOperationError):
        return "INVALID_OPERATION"
    if isinstance(
        exc,
        (AssetNotFoundError, ItemNotFoundError, TrackNotFoundError, CheckpointNotFoundError),
    ):
        return "NOT_FOUND"
    if isinstance(exc, VersionConflictError):
        return "VERSION_CONFLICT"
    if isinstance(exc, TimelineStoreError):
        return "STORE_ERROR"
    return "UNKNOWN_ERROR"


def _first_error_field(exc: ValidationError) -> str | None:
    errors = exc.errors()
    if errors and errors[0].get("loc"):
        return ".".join(str(part) for part in errors[0]["loc"])
    return None


def execute_tool(
    db: Session,
    project_id: UUID,
    tool_name: str,
    arguments: dict[str, Any],
    actor: str = DEFAULT_TOOL_ACTOR,
    expected_version: int | None = None,
) -> dict[str, Any]:
    """
    Run a timeline tool and return a ``{"success", "message", ...}`` dict.

    Failures never raise; they come back with ``success`` False and the
    reason in ``message``.
    """
    tool_map = {
        "get_timeline": _get_timeline,
        "place_asset": _place_asset,
        "modify_asset": _modify_asset,
        "remove_timeline_item": _remove_timeline_item,
        "reorder_timeline_items": _reorder_timeline_items,
        "apply_composition_filters": _apply_composition_filters,
        "clear_composition_filters": _clear_composition_filters,
    }
    tool_fn = tool_map.get(tool_name)
    if not tool_fn:
        return _create_tool_error(
            "UNKNOWN_TOOL",
            f"Unknown tool: {tool_name}",
            context={"available_tools": sorted(tool_map.keys())},
        )

    try:
        result = tool_fn(
            db=db,
            project_id=project_id,
            actor=actor,
            expected_version=expected_version,
            arguments=arguments or {},
        )
    except ValidationError as exc:
        db.rollback()
        return _create_tool_error(
            "VALIDATION_ERROR",
            str(exc),
            context={"tool": tool_name, "arguments": arguments},
            affected_field=_first_error_field(exc),
        )
    except TimelineError as exc:
        db.rollback()
        logger.warning(f"Tool {tool_name} rejected: {exc}")
        return _create_tool_error(
            _categorize_exception(exc),
            str(exc),
            context={"tool": tool_name, "arguments": arguments},
        )

    logger.info(f"Tool {tool_name} for project {project_id}: {result['message']}")
    return result


# =============================================================================
# Tool Implementations
# =============================================================================


def _get_timeline(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    current = get_timeline_snapshot_by_project(db, project_id)
    item_count = len(current.timeline.all_items())
    return {
        "success": True,
        "message": (
            f"Timeline v{current.version}: {item_count} items, "
            f"{format_duration(current.timeline.duration)} long"
        ),
        "version": current.version,
        "timeline": build_render_payload(current.timeline),
    }


def _place_asset(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    request = PlaceAssetRequest.model_validate(arguments)
    edit = place_asset(db, project_id, request, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "item_id": edit.result.item.id,
        "track_id": edit.result.track_id,
        "version": edit.checkpoint.version,
    }


def _modify_asset(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    args = dict(arguments)
    item_id = args.pop("item_id", None)
    if not item_id:
        raise InvalidOperationError("item_id is required")
    request = ModifyItemRequest.model_validate(args)
    edit = modify_asset(db, project_id, item_id, request, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "updated_item": edit.result.item.to_wire(),
        "version": edit.checkpoint.version,
    }


def _remove_timeline_item(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    item_id = arguments.get("item_id")
    if not item_id:
        raise InvalidOperationError("item_id is required")
    edit = remove_item(db, project_id, item_id, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "version": edit.checkpoint.version,
    }


def _reorder_timeline_items(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    request = ReorderRequest.model_validate(arguments)
    edit = reorder_items(db, project_id, request, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "reordered_items": [item.to_wire() for item in edit.result.reordered_items],
        "conflicts": edit.result.conflicts,
        "version": edit.checkpoint.version,
    }


def _apply_composition_filters(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    filters = CompositionFilters.model_validate(arguments)
    edit = apply_composition_filters(db, project_id, filters, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "composition_filters": (
            edit.timeline.composition_filters.to_wire()
            if edit.timeline.composition_filters else None
        ),
        "version": edit.checkpoint.version,
    }


def _clear_composition_filters(
    db: Session,
    project_id: UUID,
    actor: str,
    expected_version: int | None,
    arguments: dict[str, Any],
) -> dict[str, Any]:
    edit = clear_composition_filters(db, project_id, actor, expected_version)
    return {
        "success": True,
        "message": edit.message,
        "version": edit.checkpoint.version,
    }
