from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class Renderer(Protocol):
    """Receives the drawing primitives of a mechanism in model units."""

    def node(self, id: Optional[str], x: float, y: float, base: bool = False) -> None: ...

    def constraint(self, id: Optional[str], x1: float, y1: float, x2: float, y2: float, kind: str = "free") -> None: ...

    def force(self, id: Optional[str], x: float, y: float, w: float, push: bool = False) -> None: ...

    def spring(self, id: Optional[str], x1: float, y1: float, x2: float, y2: float) -> None: ...


class CommandRenderer:
    """Collects draw calls as JSON-ready scene commands."""

    def __init__(self):
        self.commands: List[Dict[str, Any]] = []

    def node(self, id, x, y, base=False):
        self.commands.append({"cmd": "node", "id": id, "x": x, "y": y, "base": base})

    def constraint(self, id, x1, y1, x2, y2, kind="free"):
        self.commands.append({"cmd": "constraint", "id": id, "x1": x1, "y1": y1, "x2": x2, "y2": y2, "kind": kind})

    def force(self, id, x, y, w, push=False):
        self.commands.append({"cmd": "force", "id": id, "x": x, "y": y, "w": w, "mode": "push" if push else "pull"})

    def spring(self, id, x1, y1, x2, y2):
        self.commands.append({"cmd": "spring", "id": id, "x1": x1, "y1": y1, "x2": x2, "y2": y2})

    def scene(self) -> Dict[str, Any]:
        return {"commands": list(self.commands)}
