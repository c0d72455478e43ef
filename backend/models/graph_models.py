"""
Node graph models consumed by the graph sequencer and populator.

Each node kind carries its own payload; GraphNode is a discriminated union on
``kind`` so code that walks the graph can match every variant explicitly.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import Field

from models.timeline_models import MediaMetadata, WireModel


class NodeKind(str, Enum):
    STARTING = "starting"
    VIDEO_ASSET = "video_asset"
    IMAGE_ASSET = "image_asset"
    DRAFT = "draft"
    GENERATING_ASSET = "generating_asset"


# =============================================================================
# NODE PAYLOADS
# =============================================================================


class StartingNodeData(WireModel):
    label: str = "Start"


class AssetNodeData(WireModel):
    asset_id: str
    name: str = ""
    url: str | None = None
    metadata: MediaMetadata | None = None


class DraftNodeData(WireModel):
    title: str
    description: str | None = None
    estimated_duration: float | None = Field(default=None, gt=0)


class GeneratingNodeData(WireModel):
    """Placeholder for content a provider is still producing."""
    prompt: str = ""
    target_kind: Literal["video", "image"] = "video"


# =============================================================================
# NODES
# =============================================================================


class StartingNode(WireModel):
    id: str
    kind: Literal["starting"] = "starting"
    data: StartingNodeData = Field(default_factory=StartingNodeData)


class VideoAssetNode(WireModel):
    id: str
    kind: Literal["video_asset"] = "video_asset"
    data: AssetNodeData


class ImageAssetNode(WireModel):
    id: str
    kind: Literal["image_asset"] = "image_asset"
    data: AssetNodeData


class DraftNode(WireModel):
    id: str
    kind: Literal["draft"] = "draft"
    data: DraftNodeData


class GeneratingAssetNode(WireModel):
    id: str
    kind: Literal["generating_asset"] = "generating_asset"
    data: GeneratingNodeData = Field(default_factory=GeneratingNodeData)


GraphNode = Annotated[
    Union[StartingNode, VideoAssetNode, ImageAssetNode, DraftNode, GeneratingAssetNode],
    Field(discriminator="kind"),
]


class GraphEdge(WireModel):
    source: str
    target: str


class NodeGraph(WireModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
