# -*- coding: utf-8 -*-
"""
Translation dictionaries for English and Portuguese.

This module contains all translatable strings for Task Time Manager.
Every TaskStatus and SortMode value must have a `status.*` / `sort.*` entry in
each language.
"""

TRANSLATIONS = {
    "en": {
        # Application
        "app.name": "Task Time Manager",

        # Status
        "status.Not Started": "Not Started",
        "status.In Progress": "In Progress",
        "status.On Hold": "On Hold",
        "status.Completed": "Completed",

        # Sort modes
        "sort.created_asc": "Oldest first",
        "sort.created_desc": "Newest first",
        "sort.deadline_asc": "Deadline (soonest)",
        "sort.deadline_desc": "Deadline (latest)",
        "sort.title_asc": "Title A-Z",
        "sort.title_desc": "Title Z-A",
        "sort.status": "Status",
        "sort.project": "Project",

        # Summary
        "summary.title": "Task summary",
        "summary.generated": "Generated {date}",
        "summary.total": "Total tasks",
        "summary.completed": "Completed",
        "summary.in_progress": "In progress",
        "summary.overdue": "Overdue",
        "summary.completion_rate": "Completion rate",
        "summary.estimated": "Estimated",
        "summary.actual": "Actual",
        "summary.efficiency": "Efficiency",
        "summary.no_project": "No project",
        "summary.no_tasks": "No tasks found",
        "summary.deadline": "Deadline",
        "summary.overdue_flag": "overdue!",
        "summary.running": "running",
        "summary.cost": "Cost",
    },
    "pt": {
        # Application
        "app.name": "Task Time Manager",

        # Status
        "status.Not Started": "Não Iniciado",
        "status.In Progress": "Em Progresso",
        "status.On Hold": "Em Pausa",
        "status.Completed": "Concluído",

        # Sort modes
        "sort.created_asc": "Mais antigas",
        "sort.created_desc": "Mais recentes",
        "sort.deadline_asc": "Prazo (mais próximo)",
        "sort.deadline_desc": "Prazo (mais distante)",
        "sort.title_asc": "Título A-Z",
        "sort.title_desc": "Título Z-A",
        "sort.status": "Status",
        "sort.project": "Projeto",

        # Summary
        "summary.title": "Resumo de tarefas",
        "summary.generated": "Gerado em {date}",
        "summary.total": "Total de tarefas",
        "summary.completed": "Concluídas",
        "summary.in_progress": "Em progresso",
        "summary.overdue": "Atrasadas",
        "summary.completion_rate": "Taxa de conclusão",
        "summary.estimated": "Estimado",
        "summary.actual": "Real",
        "summary.efficiency": "Eficiência",
        "summary.no_project": "Sem projeto",
        "summary.no_tasks": "Nenhuma tarefa encontrada",
        "summary.deadline": "Prazo",
        "summary.overdue_flag": "atrasado!",
        "summary.running": "em andamento",
        "summary.cost": "Custo",
    },
}
