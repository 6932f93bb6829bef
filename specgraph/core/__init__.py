"""Engine services: workspace, locators, dependency graph, deletion guard."""
