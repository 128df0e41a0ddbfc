"""
Purpose:
- Offline stand-in for a real model so the front-end can be developed without credentials.

Notes:
- The reply arrives inside a ```json fence with a short lead-in, so the normalizer's
  brace-span recovery runs as it would for a chatty model.
"""

from __future__ import annotations
import json
from typing import Any, Dict, Sequence

class StubGateway:
    name = "stub"
    model = "stub"

    def invoke(self, images: Sequence[str], system_prompt: str, user_prompt: str,
               mime_type: str = "image/jpeg") -> str:
        """
        Very simple placeholder reply. Swap provider in settings for a real model.
        """
        report = {
            "vehicle_title": "Stub Vehicle",
            "lens_score": 50,
            "summary": f"Received {len(images)} {mime_type} screenshot(s); no model is wired up.",
            "market_value_estimate": "Unknown",
            "red_flags": ["Analysis not performed (stub provider)"],
            "questions_to_ask": [],
        }
        return "Here is the report:\n```json\n" + json.dumps(report, indent=2) + "\n```"

    def status(self) -> Dict[str, Any]:
        return {"provider": self.name, "model": self.model, "configured": True}
