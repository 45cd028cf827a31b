"""Assistant pipeline: analyse a turn, pick a responder, keep session state."""

from __future__ import annotations

import asyncio
import logging

from ..cases import CaseDrafter, CaseRouter, ComplianceChecker, assess_case
from ..config import AssistantSettings, get_settings
from ..conversations import ConversationContextStore
from ..nlp import EntityExtractor, Intent, IntentClassifier, MessageAnalyser, MessageAnalysis
from ..nlp.intents import load_intent_table
from ..policies import HistoricalCaseIndex, PolicyKnowledgeStore
from ..scenarios import ScenarioCatalog
from . import responders
from .errors import ErrorHandler
from .schemas import AssistantResponse

logger = logging.getLogger(__name__)

_DYNAMICS_TRIGGER = "help me access dynamics"
_PRECEDENT_LIMIT = 3


class AssistantService:
    """Turn a free-text utterance plus a session id into one assistant response.

    All collaborators are injected; nothing here is a module-level singleton,
    so tests can swap any table or service.
    """

    def __init__(
        self,
        analyser: MessageAnalyser,
        catalog: ScenarioCatalog,
        policies: PolicyKnowledgeStore,
        contexts: ConversationContextStore,
        checker: ComplianceChecker,
        router: CaseRouter,
        drafter: CaseDrafter,
        errors: ErrorHandler,
        latency_seconds: float = 0.0,
        timeout_seconds: float = 30.0,
    ):
        self.analyser = analyser
        self.catalog = catalog
        self.policies = policies
        self.contexts = contexts
        self.checker = checker
        self.router = router
        self.drafter = drafter
        self.errors = errors
        self._latency = latency_seconds
        self._timeout = timeout_seconds

    def process_message(self, text: str, session_id: str) -> AssistantResponse:
        """Run the pipeline synchronously. Never raises."""

        try:
            return self._process(text, session_id)
        except Exception as exc:
            logger.exception("Assistant pipeline failed for session %s", session_id)
            info = self.errors.handle(exc, {"session_id": session_id})
            return responders.error_response(info, self.errors.fallback(info.type))

    async def respond(self, text: str, session_id: str) -> AssistantResponse:
        """Like :meth:`process_message` behind the simulated upstream latency.

        When the latency exceeds the timeout the knowledge-base fallback is
        returned instead.
        """

        try:
            return await asyncio.wait_for(self._respond(text, session_id), self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Assistant response timed out after %ss for session %s",
                self._timeout,
                session_id,
            )
            self.errors.handle(
                TimeoutError("assistant response timed out"), {"session_id": session_id}
            )
            return responders.knowledge_base_fallback()

    async def _respond(self, text: str, session_id: str) -> AssistantResponse:
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        return self.process_message(text, session_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _process(self, text: str, session_id: str) -> AssistantResponse:
        if not isinstance(text, str):
            raise ValueError("Invalid message: expected text")
        resolved = self.contexts.resolve_reference(session_id, text)
        analysis = self.analyser.analyse(resolved)
        self.contexts.add_message(session_id, "user", text, analysis)

        if _DYNAMICS_TRIGGER in resolved.lower():
            response = responders.dynamics_help()
        else:
            scenario = self.catalog.match(resolved)
            if scenario is not None:
                response = responders.scenario_response(scenario, analysis)
            else:
                response = self._respond_to_intent(session_id, analysis)

        self.contexts.add_message(session_id, "assistant", response.response)
        if response.requires_case:
            self.contexts.add_pending_action(
                session_id,
                "create_case",
                "Create the suggested case",
                {"scenarioId": response.scenario_id, "category": response.category},
            )
        logger.debug(
            "Session %s: %s (%s)", session_id, response.response_type, analysis.intent.value
        )
        return response

    def _respond_to_intent(self, session_id: str, analysis: MessageAnalysis) -> AssistantResponse:
        intent = analysis.intent
        if intent in (Intent.CASE_CREATION, Intent.ESCALATION_NEEDED):
            return self._case_suggestion(session_id, analysis)
        if intent is Intent.GUIDANCE_REQUEST:
            return responders.guidance(self.catalog.categories(), self.catalog.case_creation_steps)
        if intent is Intent.PRECEDENT_SEARCH:
            return self._precedents(analysis)
        return self._policy_answer(analysis)

    # ------------------------------------------------------------------
    # Responders backed by services
    # ------------------------------------------------------------------
    def _policy_answer(self, analysis: MessageAnalysis) -> AssistantResponse:
        answer = self.policies.answer_policy_question(analysis.text)
        if answer is not None:
            return responders.policy_answer(analysis, answer=answer)
        entities = analysis.entities
        lookup = None
        segment = entities.first("segment")
        if segment:
            lookup = self.policies.lookup_discount_policy(
                entities.first("deal_type") or "newBusiness",
                segment,
                entities.first("region"),
            )
        elif entities.percentage or entities.currency:
            lookup = self.policies.lookup_approval_requirement(
                entities.first("percentage"), entities.first("currency")
            )
        return responders.policy_answer(analysis, lookup=lookup)

    def _case_suggestion(self, session_id: str, analysis: MessageAnalysis) -> AssistantResponse:
        context = self.contexts.get_or_create(session_id)
        draft = self.drafter.from_context(context, analysis)
        assessment = assess_case(self.checker, self.router, draft)
        return responders.case_suggestion(assessment)

    def _precedents(self, analysis: MessageAnalysis) -> AssistantResponse:
        entities = analysis.entities
        deal_type = entities.first("deal_type")
        segment = entities.first("segment")
        region = entities.first("region")
        value = entities.first("currency")
        index = self.policies.cases
        if value:
            cases = index.similar_cases(
                value, deal_type or "newBusiness", segment or "enterprise", region or "namer"
            )
        else:
            cases = index.search(None, deal_type=deal_type, segment=segment, region=region)
        return responders.precedent_results(cases[:_PRECEDENT_LIMIT])


def build_assistant(settings: AssistantSettings | None = None) -> AssistantService:
    """Wire the default pipeline from settings and the bundled data files."""

    settings = settings or get_settings()
    cases = HistoricalCaseIndex.load(settings.historical_cases_path)
    policies = PolicyKnowledgeStore(historical_cases=cases)
    return AssistantService(
        analyser=MessageAnalyser(
            extractor=EntityExtractor(),
            classifier=IntentClassifier(load_intent_table(settings.intent_patterns_path)),
        ),
        catalog=ScenarioCatalog.load(settings.scenario_catalog_path),
        policies=policies,
        contexts=ConversationContextStore(
            max_messages=settings.context_max_messages,
            ttl_seconds=settings.session_ttl_seconds,
            sweep_interval_seconds=settings.session_sweep_interval_seconds,
        ),
        checker=ComplianceChecker(policies),
        router=CaseRouter(policies),
        drafter=CaseDrafter(),
        errors=ErrorHandler(),
        latency_seconds=settings.assistant_latency_seconds,
        timeout_seconds=settings.assistant_timeout_seconds,
    )
