"""specgraph: dependency and structure graphs over a Markdown workspace.

A workspace is a directory tree holding specifications (``spec/<slug>/spec.md``),
implementations (``impl/<slug>/impl.md``) and scratch pads
(``.specman/scratchpad/<slug>/scratch.md``). The engine resolves references
between them, builds dependency trees for impact analysis, indexes heading
structure for lookup and rendering, and guards deletions.
"""

__version__ = "0.1.0"
