import json
import logging
from collections import defaultdict
from typing import Any, Dict, List

from ..models import InspectionBundle, Resource

logger = logging.getLogger(__name__)


class BundleResponseFormatter:

    @staticmethod
    def format_for_llm(bundle: InspectionBundle) -> Dict[str, Any]:
        llm_data = []
        ui_context = []
        kind_counts = defaultdict(int)

        for resource in bundle:
            llm_data.append(BundleResponseFormatter._strip(resource))
            kind_counts[resource.kind or "Unknown"] += 1

            entry = {"kind": resource.kind, "name": resource.name, "cluster": bundle.cluster}
            if resource.namespace:
                entry["namespace"] = resource.namespace
            ui_context.append(entry)

        ownership = [
            {"source": src, "target": tgt, "relationship": data.get("relationship_type", "owner")}
            for src, tgt, data in bundle.graph.edges(data=True)
        ]

        return {
            "llm": llm_data,
            "uiContext": ui_context,
            "ownership": ownership,
            "counts": {
                "total_resources": len(llm_data),
                "resource_types": dict(kind_counts),
            },
        }

    @staticmethod
    def to_text(bundle: InspectionBundle) -> str:
        response = BundleResponseFormatter.format_for_llm(bundle)
        logger.debug(f"Formatted {response['counts']['total_resources']} resources for cluster {bundle.cluster}")
        return json.dumps(response, default=str)

    @staticmethod
    def _strip(resource: Resource) -> Dict[str, Any]:
        doc = resource.to_dict()
        metadata = doc.get("metadata")
        if isinstance(metadata, dict):
            # managedFields only describe field ownership and dwarf the useful payload
            metadata.pop("managedFields", None)
        return doc


def images_to_text(images: Dict[str, List[str]]) -> str:
    return json.dumps(images)
