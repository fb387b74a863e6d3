# Loaders that turn planner spreadsheets into rows for demand_engine

from .spreadsheet_loader import DemandSourceLoader, frame_to_rows, read_frame

__all__ = ["DemandSourceLoader", "frame_to_rows", "read_frame"]
