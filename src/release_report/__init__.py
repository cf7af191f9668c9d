"""Release commit report.

Collects the Jira tickets tagged with a release (fixVersion), looks up the
source-control commits linked to each ticket, groups everything by owning
team and renders a plain-text report.
"""

__version__ = "0.1.0"
