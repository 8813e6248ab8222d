"""
Summary Service - printable plain-text summaries using Jinja2 templates.

Architecture Decision: Template Pattern
Allows users to customize the summary layout without changing code.
"""

import datetime
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from tasktime.domain.models import TaskFilters, TaskView
from tasktime.i18n import tr
from tasktime.utils import format_duration, get_resource_path


class SummaryService:
    """
    Renders a summary of statistics and tasks (grouped by project).
    """

    def __init__(self, template_dir: Optional[Path] = None):
        """
        Initialize the summary service.

        Args:
            template_dir: Directory containing Jinja2 templates
        """
        if template_dir is None:
            template_dir = get_resource_path("resources/templates")

        self.template_dir = Path(template_dir)

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            trim_blocks=True,
            lstrip_blocks=True
        )

        self.env.filters['format_duration'] = format_duration
        self.env.filters['format_date'] = self._format_date
        self.env.filters['tr'] = tr

    @staticmethod
    def _format_date(dt: datetime.datetime, fmt: str = "%Y-%m-%d %H:%M") -> str:
        """Format datetime object"""
        return dt.strftime(fmt)

    @staticmethod
    def _group_by_project(views: List[TaskView]) -> List[Dict]:
        groups: Dict[str, Dict] = {}
        for view in views:
            group = groups.setdefault(view.project_name, {"name": view.project_name, "views": []})
            group["views"].append(view)
        return list(groups.values())

    def render(self, manager, template_name: str = "summary.txt",
               mode=None, filters: Optional[TaskFilters] = None,
               output_file: Optional[Path] = None) -> str:
        """
        Render the summary for a TaskManager's current state.

        Args:
            manager: The TaskManager to summarize
            template_name: Name of the template file
            mode: Sort mode (defaults to the stored preference)
            filters: Task filters (defaults to the stored preference)
            output_file: Optional file path to save the summary

        Returns:
            The rendered summary
        """
        views = manager.views(mode=mode, filters=filters)
        context = {
            'generated_at': manager.clock(),
            'stats': manager.stats(),
            'groups': self._group_by_project(views),
        }

        template = self.env.get_template(template_name)
        content = template.render(**context)

        if output_file:
            output_file = Path(output_file)
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(content)

        return content

    def list_templates(self) -> List[str]:
        """List all available template files"""
        return sorted(f.name for f in self.template_dir.glob("*.txt"))
