"""Deterministic summaries of wizard form data.

Works on step-name keyed form data (``welcome``, ``company``,
``organization``, ``preferences``) and produces the organization profile,
recommendations and OKR setup hints shown at the end of the wizard.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from stratix.models import OnboardingProgress, OnboardingSession
from stratix.step_schemas import STEP_NAMES
from .validation import pick


RUSHED_STEP_SECONDS = 60
LOW_COMPLETION_RATE = 50

AI_ASSISTED_LEVELS = ("moderate", "extensive")
BEGINNER_EXPERIENCE = ("none", "basic")

INDUSTRY_OBJECTIVES: Dict[str, List[Dict[str, str]]] = {
    "technology": [
        {"title": "Acelerar el desarrollo de producto", "category": "product"},
        {"title": "Mejorar la calidad y estabilidad de la plataforma", "category": "operations"},
    ],
    "retail": [
        {"title": "Incrementar las ventas por canal digital", "category": "sales"},
        {"title": "Mejorar la experiencia del cliente en tienda", "category": "customer"},
    ],
    "finance": [
        {"title": "Reducir el riesgo operativo", "category": "operations"},
        {"title": "Ampliar la base de clientes", "category": "growth"},
    ],
    "healthcare": [
        {"title": "Mejorar la satisfacción de los pacientes", "category": "customer"},
        {"title": "Optimizar los tiempos de atención", "category": "operations"},
    ],
}

GENERIC_OBJECTIVES: List[Dict[str, str]] = [
    {"title": "Aumentar los ingresos recurrentes", "category": "growth"},
    {"title": "Fortalecer la alineación del equipo", "category": "people"},
]

TEAM_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "startup": {"hierarchy": "flat", "departments": ["Producto", "Tecnología", "Ventas"]},
    "small": {"hierarchy": "flat", "departments": ["Producto", "Ventas", "Operaciones"]},
    "pyme": {"hierarchy": "flat", "departments": ["Producto", "Ventas", "Operaciones"]},
    "medium": {"hierarchy": "functional", "departments": ["Producto", "Ventas", "Operaciones", "Recursos Humanos"]},
    "empresa": {"hierarchy": "functional", "departments": ["Producto", "Ventas", "Operaciones", "Recursos Humanos"]},
}

DEFAULT_TEAM_TEMPLATE: Dict[str, Any] = {
    "hierarchy": "hierarchical",
    "departments": ["Dirección", "Producto", "Ventas", "Operaciones", "Finanzas", "Recursos Humanos"],
}


def form_data_by_step_name(form_data: Optional[Mapping[Any, Any]]) -> Dict[str, Dict[str, Any]]:
    """Re-key session form data from step numbers to step names; named keys pass through."""
    named: Dict[str, Dict[str, Any]] = {}
    for key, value in (form_data or {}).items():
        if not isinstance(value, Mapping):
            continue
        try:
            name = STEP_NAMES.get(int(key), str(key))
        except (TypeError, ValueError):
            name = str(key)
        named[name] = dict(value)
    return named


class WizardDataTransformer:
    """Builds organization summaries, completion analytics and OKR hints."""

    def transform_wizard_to_org_data(self, form_data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        welcome, company, organization, preferences = self._sections(form_data)
        size = pick(company, "company_size", "companySize", "organizationSize", "organization_size")

        org = {
            "name": pick(company, "company_name", "companyName", "organizationName", "organization_name", default=""),
            "industry": pick(company, "industry_id", "industryId", "industry", default=""),
            "size": size or "startup",
            "description": pick(company, "description", default=""),
            "country": pick(company, "country", default=""),
            "website": pick(company, "website"),
            "employee_count": pick(company, "employeeCount", "employee_count"),
            "primary_contact": {
                "name": self._contact_name(welcome),
                "job_title": pick(welcome, "job_title", "jobTitle", default=""),
                "email": pick(welcome, "email"),
            },
            "okr_maturity": pick(organization, "okr_maturity", "okrMaturity", default="beginner"),
            "business_goals": list(pick(organization, "business_goals", "businessGoals", default=[])),
            "current_challenges": list(pick(organization, "current_challenges", "currentChallenges", default=[])),
            "preferences": {
                "language": pick(preferences, "language", default="es"),
                "communication_style": pick(preferences, "communication_style", "communicationStyle"),
                "ai_assistance_level": pick(preferences, "ai_assistance_level", "aiAssistanceLevel"),
            },
        }

        return {
            "organization": org,
            "recommendations": self._recommendations(welcome, company, organization),
            "next_steps": self._next_steps(welcome, preferences),
        }

    def extract_completion_analytics(
        self,
        session: OnboardingSession,
        progress: Sequence[OnboardingProgress],
    ) -> Dict[str, Any]:
        """Completion rate and per-step timing; tolerates empty progress and zero totals."""
        total_steps = session.total_steps or 0
        completed = sum(1 for step in progress if step.completed)
        completion_rate = round(completed / total_steps * 100, 2) if total_steps > 0 else 0

        step_analytics = []
        for step in progress:
            step_analytics.append({
                "step_number": step.step_number,
                "step_name": step.step_name,
                "completed": bool(step.completed),
                "skipped": bool(step.skipped),
                "time_spent_ms": self._time_spent_ms(step),
            })

        risk_factors = []
        if completion_rate < LOW_COMPLETION_RATE:
            risk_factors.append(f"Baja tasa de finalización ({completion_rate}%)")
        for entry in step_analytics:
            if entry["completed"] and 0 < entry["time_spent_ms"] < RUSHED_STEP_SECONDS * 1000:
                risk_factors.append(f"Paso '{entry['step_name']}' completado demasiado rápido")

        return {
            "completion_rate": completion_rate,
            "step_analytics": step_analytics,
            "time_spent_ms": sum(entry["time_spent_ms"] for entry in step_analytics),
            "risk_factors": risk_factors,
        }

    def transform_for_okr_setup(self, form_data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        welcome, company, organization, _ = self._sections(form_data)
        industry = str(pick(company, "industry_id", "industryId", "industry", default="")).lower()
        size = pick(company, "company_size", "companySize", "organizationSize", "organization_size", default="")

        suggested = [
            {**template, "priority": "high" if index == 0 else "medium", "source": "industry"}
            for index, template in enumerate(INDUSTRY_OBJECTIVES.get(industry, GENERIC_OBJECTIVES))
        ]
        for goal in pick(organization, "business_goals", "businessGoals", default=[]) or []:
            suggested.append({"title": f"Avanzar en {goal}", "category": "business", "priority": "medium", "source": "goal"})

        team = TEAM_TEMPLATES.get(size, DEFAULT_TEAM_TEMPLATE)
        return {
            "suggested_objectives": suggested,
            "team_structure": {"hierarchy": team["hierarchy"], "departments": list(team["departments"])},
            "priority_matrix": self._priority_matrix(welcome, organization),
        }

    @staticmethod
    def _sections(form_data: Optional[Mapping[str, Any]]):
        named = form_data_by_step_name(form_data)
        return (
            named.get("welcome", {}),
            named.get("company", {}),
            named.get("organization", {}),
            named.get("preferences", {}),
        )

    @staticmethod
    def _contact_name(welcome: Mapping[str, Any]) -> str:
        full_name = pick(welcome, "full_name", "fullName")
        if full_name:
            return full_name
        parts = [pick(welcome, "firstName", "first_name"), pick(welcome, "lastName", "last_name")]
        return " ".join(part for part in parts if part)

    @staticmethod
    def _recommendations(welcome, company, organization) -> List[Dict[str, str]]:
        recommendations = []
        experience = pick(welcome, "experience_with_okr", "experienceWithOkr")
        if experience in BEGINNER_EXPERIENCE:
            recommendations.append({
                "type": "learning",
                "title": "Capacitación en metodología OKR",
                "description": "Programa sesiones introductorias para que el equipo domine los fundamentos de los OKRs",
                "priority": "high",
            })

        size = pick(company, "company_size", "companySize", "organizationSize", "organization_size")
        if size == "startup":
            recommendations.append({
                "type": "strategy",
                "title": "Objetivos de crecimiento",
                "description": "Enfoca los primeros OKRs en validar el producto y ganar tracción en el mercado",
                "priority": "high",
            })

        challenges = pick(organization, "current_challenges", "currentChallenges", default=[]) or []
        if "alignment" in challenges:
            recommendations.append({
                "type": "process",
                "title": "Alineación de equipos",
                "description": "Conecta los OKRs de cada equipo con los objetivos de la organización",
                "priority": "medium",
            })
        return recommendations

    @staticmethod
    def _next_steps(welcome, preferences) -> List[str]:
        steps = [
            "Definir los objetivos del primer ciclo",
            "Invitar a los líderes de cada equipo",
        ]
        if pick(preferences, "ai_assistance_level", "aiAssistanceLevel") in AI_ASSISTED_LEVELS:
            steps.append("Revisar las sugerencias de OKRs generadas por IA")
        if pick(welcome, "experience_with_okr", "experienceWithOkr") in BEGINNER_EXPERIENCE:
            steps.append("Completar la guía introductoria de OKRs")
        steps.append("Programar la primera revisión de progreso")
        return steps

    @staticmethod
    def _priority_matrix(welcome, organization) -> Dict[str, List[str]]:
        matrix: Dict[str, List[str]] = {"high_priority": [], "medium_priority": [], "low_priority": []}
        primary_goal = pick(welcome, "primary_goal", "primaryGoal")
        urgency = pick(welcome, "urgency_level", "urgencyLevel", default="medium")
        if primary_goal:
            if urgency == "high":
                matrix["high_priority"].append(f"Atención inmediata: {primary_goal}")
            elif urgency == "low":
                matrix["low_priority"].append(primary_goal)
            else:
                matrix["medium_priority"].append(primary_goal)
        for goal in pick(organization, "business_goals", "businessGoals", default=[]) or []:
            matrix["medium_priority"].append(goal)
        for challenge in pick(organization, "current_challenges", "currentChallenges", default=[]) or []:
            matrix["low_priority"].append(f"Resolver: {challenge}")
        return matrix

    @staticmethod
    def _time_spent_ms(step: OnboardingProgress) -> int:
        if not step.completion_time or not step.created_at:
            return 0
        return max(0, math.floor((step.completion_time - step.created_at).total_seconds() * 1000))


def create_wizard_data_transformer() -> WizardDataTransformer:
    return WizardDataTransformer()
