"""Output profiles for search results: interactive handles and schema.org JSON-LD."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .models import RankedPhoto, SearchResult

logger = logging.getLogger(__name__)

SCHEMA_CONTEXT = "https://schema.org"

DOWNLOAD_FORMATS = ["original", "jpeg", "zip"]
EXPORT_FORMATS = ["json", "csv"]
MAX_BULK_DOWNLOAD = 500
MAX_BULK_ITEMS = 1000


@dataclass
class ActionHandle:
    """An action a caller can take on one photo; never executed here."""
    action: str
    label: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    required_parameters: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "label": self.label,
            "parameters": dict(self.parameters),
            "required_parameters": list(self.required_parameters),
        }


@dataclass
class BulkActionDescriptor:
    """An action over every photo of a result page."""
    action: str
    label: str
    photo_ids: List[str]
    required_parameters: List[str] = field(default_factory=list)
    formats: List[str] = field(default_factory=list)
    max_items: int = MAX_BULK_ITEMS

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "action": self.action,
            "label": self.label,
            "photo_ids": list(self.photo_ids),
            "required_parameters": list(self.required_parameters),
            "max_items": self.max_items,
        }
        if self.formats:
            data["formats"] = list(self.formats)
        return data


def photo_actions(ranked: RankedPhoto) -> List[ActionHandle]:
    photo_id = ranked.photo.id
    return [
        ActionHandle("view", "View", {"photo_id": photo_id}),
        ActionHandle("download", "Download", {"photo_id": photo_id}, ["format"]),
        ActionHandle("share", "Share", {"photo_id": photo_id}, ["recipients"]),
        ActionHandle("add_to_collection", "Add to collection", {"photo_id": photo_id}, ["collection_id"]),
    ]


def bulk_actions(result: SearchResult) -> List[BulkActionDescriptor]:
    """Bulk descriptors, offered only when the page holds more than one photo."""
    if len(result.photos) <= 1:
        return []
    photo_ids = [ranked.photo.id for ranked in result.photos]
    return [
        BulkActionDescriptor("download_all", "Download all", photo_ids, ["format"], DOWNLOAD_FORMATS, MAX_BULK_DOWNLOAD),
        BulkActionDescriptor("add_all_to_album", "Add all to album", photo_ids, ["album_id"]),
        BulkActionDescriptor("export_all", "Export metadata", photo_ids, ["format"], EXPORT_FORMATS),
    ]


def format_interactive(result: SearchResult) -> Dict[str, Any]:
    """Result page annotated with per-photo action handles and bulk descriptors."""
    data = result.to_dict()
    data["photos"] = []
    for ranked in result.photos:
        item = ranked.to_dict()
        item["actions"] = [handle.to_dict() for handle in photo_actions(ranked)]
        data["photos"].append(item)
    data["bulk_actions"] = [descriptor.to_dict() for descriptor in bulk_actions(result)]
    return data


def _property(name: str, value: Any) -> Dict[str, Any]:
    return {"@type": "PropertyValue", "name": name, "value": value}


def _entry_point(url_template: str) -> Dict[str, Any]:
    return {"@type": "EntryPoint", "urlTemplate": url_template}


def image_object(ranked: RankedPhoto, base_url: str = "") -> Dict[str, Any]:
    """Describe one ranked photo as a schema.org ImageObject."""
    photo = ranked.photo
    metadata = photo.metadata
    photo_path = f"{base_url}/api/photos/{quote(photo.id, safe='')}"

    item: Dict[str, Any] = {
        "@type": "ImageObject",
        "identifier": photo.id,
        "name": photo.display_name,
        "contentUrl": photo.url or photo_path,
    }
    if photo.thumbnail_url:
        item["thumbnailUrl"] = photo.thumbnail_url
    keywords = metadata.keywords + metadata.objects + metadata.scenes
    if keywords:
        item["keywords"] = keywords
    if metadata.location:
        item["contentLocation"] = {"@type": "Place", "name": metadata.location}
    if metadata.taken_at:
        item["dateCreated"] = metadata.taken_at.isoformat()
    if metadata.camera:
        item["exifData"] = [_property("camera", metadata.camera)]
    if metadata.people:
        item["about"] = [{"@type": "Person", "name": name} for name in metadata.people]

    item["additionalProperty"] = [
        _property("relevanceScore", round(ranked.relevance_score, 6)),
        _property("matchedCriteria", list(ranked.matched_criteria)),
        _property("extractionConfidence", photo.confidence),
    ]
    item["potentialAction"] = [
        {"@type": "ViewAction", "target": _entry_point(photo.url or photo_path)},
        {"@type": "DownloadAction", "target": _entry_point(f"{photo_path}/download{{?format}}")},
        {"@type": "ShareAction", "target": _entry_point(f"{photo_path}/share")},
        {
            "@type": "AddAction",
            "target": _entry_point(f"{base_url}/api/albums/{{album_id}}/photos"),
            "object": photo.id,
        },
    ]
    return item


def format_structured(result: SearchResult, query_text: Optional[str] = None, base_url: str = "") -> Dict[str, Any]:
    """Express a result page as a schema.org SearchResultsPage.

    Args:
        result: Search result page
        query_text: Original query text, if any
        base_url: Prefix for generated entry point URLs

    Returns:
        JSON-LD dictionary with an ItemList of ImageObjects and a SearchAction
    """
    elements = [
        {"@type": "ListItem", "position": result.offset + i + 1, "item": image_object(ranked, base_url)}
        for i, ranked in enumerate(result.photos)
    ]
    page: Dict[str, Any] = {
        "@context": SCHEMA_CONTEXT,
        "@type": "SearchResultsPage",
        "name": f"Photo search results for '{query_text}'" if query_text else "Photo search results",
        "numberOfItems": result.total_count,
        "mainEntity": {
            "@type": "ItemList",
            "numberOfItems": len(elements),
            "itemListOrder": "https://schema.org/ItemListOrderDescending",
            "itemListElement": elements,
        },
        "potentialAction": {
            "@type": "SearchAction",
            "target": _entry_point(f"{base_url}/api/search?q={{search_term_string}}"),
            "query-input": "required name=search_term_string",
        },
        "additionalProperty": [
            _property("searchTimeMs", round(result.search_time_ms, 3)),
            _property("partial", result.partial),
            _property("offset", result.offset),
            _property("nextOffset", result.next_offset),
        ],
    }
    if query_text:
        page["potentialAction"]["query"] = query_text
    return page


REQUIRED_PAGE_FIELDS = ("@context", "@type", "mainEntity", "potentialAction", "numberOfItems")
REQUIRED_IMAGE_FIELDS = ("@type", "identifier", "name", "contentUrl", "potentialAction")


def validate_structured_data(data: Any) -> List[str]:
    """Check a SearchResultsPage document for required JSON-LD fields.

    Returns:
        Problems found; empty when the document is valid
    """
    if not isinstance(data, dict):
        return ["Structured data must be an object"]
    problems = [f"Missing required field '{name}'" for name in REQUIRED_PAGE_FIELDS if name not in data]
    if data.get("@context") not in (None, SCHEMA_CONTEXT):
        problems.append(f"Unexpected @context {data.get('@context')!r}")
    if "@type" in data and data["@type"] != "SearchResultsPage":
        problems.append(f"Expected @type 'SearchResultsPage', got {data['@type']!r}")

    action = data.get("potentialAction")
    if isinstance(action, dict) and action.get("@type") != "SearchAction":
        problems.append("potentialAction must be a SearchAction")

    main = data.get("mainEntity")
    if main is None:
        return problems
    if not isinstance(main, dict) or main.get("@type") != "ItemList":
        problems.append("mainEntity must be an ItemList")
        return problems
    for i, element in enumerate(main.get("itemListElement", [])):
        item = element.get("item") if isinstance(element, dict) else None
        if not isinstance(item, dict):
            problems.append(f"itemListElement[{i}] has no item")
            continue
        for name in REQUIRED_IMAGE_FIELDS:
            if name not in item:
                problems.append(f"itemListElement[{i}].item is missing '{name}'")
        if item.get("@type") != "ImageObject":
            problems.append(f"itemListElement[{i}].item must be an ImageObject")
    return problems
