from __future__ import annotations


class FlowDiagramError(Exception):
    """Base error carrying a message that can be shown to the user as-is."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmptyFlowError(FlowDiagramError):
    def __init__(self) -> None:
        super().__init__(
            "No prototype connections found on this page. "
            "Add some prototype links between frames first."
        )


class TierLimitError(FlowDiagramError):
    def __init__(self, tier_name: str, limit: int, found: int) -> None:
        self.tier_name = tier_name
        self.limit = limit
        self.found = found
        super().__init__(
            f"{tier_name.capitalize()} tier supports up to {limit} screens. "
            f"Found {found}. Upgrade to Pro for unlimited."
        )


class FeatureGatedError(FlowDiagramError):
    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"{feature} is a Pro feature.")


class DiagramNotFoundError(FlowDiagramError):
    def __init__(self, page_name: str | None = None) -> None:
        self.page_name = page_name
        super().__init__("No diagram to export. Generate one first.")


class ExportFailedError(FlowDiagramError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Export failed: {reason}")


class HostError(FlowDiagramError):
    """Raised by host adapters when a rasterization or export request fails."""
