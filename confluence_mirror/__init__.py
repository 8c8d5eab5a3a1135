"""Local Markdown mirror of a Confluence space.

Pulls a space's page tree into a directory of Markdown files with YAML
frontmatter and pushes local edits back, guarded by optimistic version checks.
"""

__version__ = "0.1.0"
