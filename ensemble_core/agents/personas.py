"""
Persona registry.

A persona is a named bundle of provider preference, model, temperature and system
prompt. The built-in table covers the nine specialist roles; configuration may
override individual fields once at startup, after which the registry is read-only.
"""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from ensemble_core.config.config_manager import PersonaType, PersonaOverrideConfig
from ensemble_core.agents.errors import UnknownPersonaError
from ensemble_core.monitoring.structured_logger import get_logger

PersonaRef = Union[str, PersonaType]


@dataclass(frozen=True)
class PersonaConfig:
    """Read-only configuration of one persona."""
    persona_id: PersonaType
    preferred_provider: str
    model_name: str
    temperature: float
    system_prompt: str

    @property
    def name(self) -> str:
        return self.persona_id.value


BUILTIN_PERSONAS: Dict[PersonaType, PersonaConfig] = {
    PersonaType.STRATEGIC_PLANNING: PersonaConfig(
        persona_id=PersonaType.STRATEGIC_PLANNING,
        preferred_provider="openai",
        model_name="gpt-4-turbo",
        temperature=0.7,
        system_prompt=(
            "You are an expert strategic planning AI that specializes in market analysis, "
            "competitive positioning, and business strategy development. Provide insightful, "
            "actionable strategic recommendations based on the data provided."
        ),
    ),
    PersonaType.CREATIVE_CONTENT: PersonaConfig(
        persona_id=PersonaType.CREATIVE_CONTENT,
        preferred_provider="openai",
        model_name="gpt-4-turbo",
        temperature=0.9,
        system_prompt=(
            "You are a creative content specialist AI that excels at generating engaging, "
            "persuasive marketing content. Create content that is on-brand, compelling, and "
            "optimized for the target audience and channel."
        ),
    ),
    PersonaType.SALES_NEGOTIATION: PersonaConfig(
        persona_id=PersonaType.SALES_NEGOTIATION,
        preferred_provider="anthropic",
        model_name="claude-3-opus-20240229",
        temperature=0.7,
        system_prompt=(
            "You are an expert sales negotiation AI that specializes in understanding customer "
            "needs, handling objections, and closing deals. Provide persuasive, value-focused "
            "responses that move prospects toward conversion."
        ),
    ),
    PersonaType.MARKET_RESEARCH: PersonaConfig(
        persona_id=PersonaType.MARKET_RESEARCH,
        preferred_provider="gemini",
        model_name="gemini-pro",
        temperature=0.3,
        system_prompt=(
            "You are a market research specialist AI that excels at analyzing trends, "
            "identifying opportunities, and extracting insights from data. Provide objective, "
            "data-driven analysis and recommendations."
        ),
    ),
    PersonaType.CRISIS_MANAGEMENT: PersonaConfig(
        persona_id=PersonaType.CRISIS_MANAGEMENT,
        preferred_provider="openai",
        model_name="gpt-4-turbo",
        temperature=0.4,
        system_prompt=(
            "You are a crisis management expert AI that specializes in reputation protection, "
            "stakeholder communication, and damage control. Provide calm, strategic guidance "
            "for managing and mitigating crisis situations."
        ),
    ),
    PersonaType.LEGAL_COMPLIANCE: PersonaConfig(
        persona_id=PersonaType.LEGAL_COMPLIANCE,
        preferred_provider="anthropic",
        model_name="claude-3-opus-20240229",
        temperature=0.2,
        system_prompt=(
            "You are a legal compliance specialist AI that ensures marketing activities adhere "
            "to relevant regulations and best practices. Provide cautious, thorough guidance on "
            "compliance matters while noting you do not provide legal advice."
        ),
    ),
    PersonaType.CULTURAL_INTELLIGENCE: PersonaConfig(
        persona_id=PersonaType.CULTURAL_INTELLIGENCE,
        preferred_provider="openai",
        model_name="gpt-4-turbo",
        temperature=0.6,
        system_prompt=(
            "You are a cultural intelligence expert AI that specializes in cross-cultural "
            "communication and localization. Provide guidance on adapting messaging and "
            "strategies for different cultural contexts and international markets."
        ),
    ),
    PersonaType.TECHNICAL_ANALYSIS: PersonaConfig(
        persona_id=PersonaType.TECHNICAL_ANALYSIS,
        preferred_provider="gemini",
        model_name="gemini-pro",
        temperature=0.2,
        system_prompt=(
            "You are a technical analysis specialist AI that excels at data processing, pattern "
            "recognition, and quantitative analysis. Provide precise, objective analysis of "
            "technical data and metrics."
        ),
    ),
    PersonaType.ETHICS_ADVISOR: PersonaConfig(
        persona_id=PersonaType.ETHICS_ADVISOR,
        preferred_provider="anthropic",
        model_name="claude-3-opus-20240229",
        temperature=0.3,
        system_prompt=(
            "You are an ethics advisor specialized in marketing, lead generation, and business "
            "practices. Analyze content for ethical concerns including deception, manipulation, "
            "discrimination, privacy violations, and misleading claims. Provide balanced, "
            "thoughtful ethical assessments."
        ),
    ),
}


class PersonaRegistry:
    """
    Immutable lookup of persona configurations.

    Unknown persona ids resolve to the default persona with a warning; only a
    registry without a default raises UnknownPersonaError.
    """

    def __init__(
        self,
        personas: Optional[Mapping[PersonaType, PersonaConfig]] = None,
        default_persona: Optional[PersonaRef] = PersonaType.TECHNICAL_ANALYSIS,
    ):
        self.logger = get_logger(__name__, component="persona_registry")
        self._personas = MappingProxyType(dict(BUILTIN_PERSONAS if personas is None else personas))

        self._default: Optional[PersonaType] = None
        if default_persona is not None:
            default = PersonaType.parse(default_persona)
            if default not in self._personas:
                raise ValueError(f"Default persona '{default.value}' is not registered")
            self._default = default

    @classmethod
    def from_config(
        cls,
        overrides: Mapping[str, PersonaOverrideConfig],
        default_persona: Optional[PersonaRef] = PersonaType.TECHNICAL_ANALYSIS,
    ) -> "PersonaRegistry":
        """
        Build a registry from the built-in table merged with configured overrides.

        Args:
            overrides: Persona id to override section, as loaded by ConfigManager
            default_persona: Persona used when an unknown id is requested
        """
        personas = dict(BUILTIN_PERSONAS)
        for persona_key, override in overrides.items():
            persona_id = PersonaType.parse(persona_key)
            changes = {}
            if override.provider is not None:
                changes["preferred_provider"] = override.provider
            if override.model_name is not None:
                changes["model_name"] = override.model_name
            if override.temperature is not None:
                changes["temperature"] = override.temperature
            if override.system_prompt is not None:
                changes["system_prompt"] = override.system_prompt
            personas[persona_id] = replace(personas[persona_id], **changes)

        return cls(personas, default_persona)

    @property
    def persona_ids(self) -> List[PersonaType]:
        return list(self._personas)

    @property
    def default_persona(self) -> Optional[PersonaType]:
        return self._default

    def _lookup(self, persona_id: PersonaRef) -> Optional[PersonaType]:
        try:
            parsed = PersonaType.parse(persona_id)
        except ValueError:
            return None
        return parsed if parsed in self._personas else None

    def is_registered(self, persona_id: PersonaRef) -> bool:
        return self._lookup(persona_id) is not None

    def resolve(self, persona_id: PersonaRef) -> PersonaConfig:
        """
        Get the configuration for ``persona_id``.

        Raises:
            UnknownPersonaError: If the persona is unknown and there is no default
        """
        parsed = self._lookup(persona_id)
        if parsed is not None:
            return self._personas[parsed]

        if self._default is None:
            raise UnknownPersonaError(persona_id)

        self.logger.warning(
            "Unknown persona, falling back to default",
            persona=str(persona_id),
            default_persona=self._default.value,
        )
        return self._personas[self._default]
