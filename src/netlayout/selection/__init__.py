from netlayout.selection.accumulator import SelectionAccumulator, SelectionChanges, SelectionSummary

__all__ = ["SelectionAccumulator", "SelectionChanges", "SelectionSummary"]
