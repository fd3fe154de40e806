import asyncio
from datetime import datetime
from typing import List, TypedDict

from langgraph.graph import END, StateGraph

from matchmaker.helpers.parsing import parse_ai_matches
from matchmaker.helpers.prompts import build_prompt
from matchmaker.models.ai_settings import MatchmakingSettings
from matchmaker.models.models import DrainResult, Profile, Project
from matchmaker.models.response import ChunkOutcome, MatchRunSummary
from matchmaker.services.drainer import acknowledge_jobs, drain_jobs
from matchmaker.services.matching import chunk
from matchmaker.services.persister import persist_matches, record_parse_error
from matchmaker.utils.exceptions import ConfigurationError, ModelError
from matchmaker.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)


class MatchState(TypedDict, total=False):
    drained: DrainResult
    chunks: List[List[Profile]]
    summary: MatchRunSummary


class MatchmakingPipeline:
    """
    Batch coordinator for one matchmaking run.

    drain -> (nothing to pair? stop) -> partition -> match -> finalize

    Chunks are processed strictly one after another. A model failure only
    costs its own chunk; an unparsable response becomes an error record;
    a failed batch commit aborts the run.
    """

    def __init__(self, store, client, settings: MatchmakingSettings = None):
        self.store = store
        self.client = client
        self.settings = settings or MatchmakingSettings()
        self._lock = asyncio.Lock()
        self._graph = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # LangGraph nodes -------------------------------------------------------

    async def node_drain(self, state: MatchState):
        drain = await drain_jobs(
            self.store,
            limit=self.settings.job_limit,
            defer_deletion=self.settings.defer_job_deletion,
        )
        summary = state["summary"]
        summary.jobs_found = drain.jobs_found
        summary.jobs_deleted = drain.jobs_deleted
        summary.missing_documents = drain.missing_documents
        summary.invalid_documents = drain.invalid_documents
        summary.profiles = len(drain.profiles)
        summary.projects = len(drain.projects)
        return {"drained": drain, "summary": summary}

    def route_after_drain(self, state: MatchState) -> str:
        drain = state["drained"]
        if drain.jobs_found == 0:
            logger.info("No jobs to process")
            return "end"
        if not drain.has_pairs:
            logger.info("Not enough data for matching")
            return "finalize"
        return "partition"

    async def node_partition(self, state: MatchState):
        drain = state["drained"]
        chunks = chunk(drain.profiles, self.settings.chunk_size)
        logger.info(
            f"Processing {len(drain.profiles)} profiles and {len(drain.projects)} projects "
            f"in {len(chunks)} chunks"
        )
        return {"chunks": chunks}

    async def node_match(self, state: MatchState):
        summary = state["summary"]
        projects = state["drained"].projects
        for index, people in enumerate(state.get("chunks", []), start=1):
            outcome = await self.process_chunk(index, people, projects)
            summary.chunks.append(outcome)
            summary.matches_committed += outcome.matches_committed
            summary.rejected_entries += outcome.rejected_entries
            if outcome.status == "parse_error":
                summary.parse_errors += 1
        return {"summary": summary}

    async def node_finalize(self, state: MatchState):
        summary = state["summary"]
        drain = state["drained"]
        if drain.pending_job_ids:
            if summary.failed_chunks:
                logger.warning(
                    f"Keeping {len(drain.pending_job_ids)} match jobs for the next run; "
                    f"{summary.failed_chunks} chunks failed"
                )
            else:
                summary.jobs_deleted += await acknowledge_jobs(self.store, drain.pending_job_ids)
        if summary.chunks:
            summary.status = "partial" if summary.failed_chunks else "completed"
        return {"summary": summary}

    def build_graph(self):
        g = StateGraph(MatchState)
        g.add_node("drain", self.node_drain)
        g.add_node("partition", self.node_partition)
        g.add_node("match", self.node_match)
        g.add_node("finalize", self.node_finalize)
        g.set_entry_point("drain")
        g.add_conditional_edges(
            "drain",
            self.route_after_drain,
            {"partition": "partition", "finalize": "finalize", "end": END},
        )
        g.add_edge("partition", "match")
        g.add_edge("match", "finalize")
        g.add_edge("finalize", END)
        return g.compile()

    # Chunk processing ------------------------------------------------------

    async def process_chunk(self, index: int, people: List[Profile], projects: List[Project]) -> ChunkOutcome:
        outcome = ChunkOutcome(index=index, people=len(people), status="committed")
        prompt = build_prompt(people, projects, self.settings.rules)

        logger.info(f"Calling Gemini API with {len(people)} profiles and {len(projects)} projects (chunk {index})")
        try:
            raw = await self.client.generate(prompt)
        except (ModelError, ConfigurationError) as e:
            logger.error(f"Chunk {index} skipped: {e.message}")
            outcome.status = "model_failed"
            outcome.error = e.message
            return outcome

        parsed = parse_ai_matches(
            raw,
            known_uids=[p.uid for p in people],
            known_project_ids=[p.projectId for p in projects],
        )
        if parsed.unparsable:
            logger.error(f"Failed to parse AI response for chunk {index}: {parsed.error}")
            logger.debug(f"Raw response: {raw}")
            await record_parse_error(self.store, parsed.error, raw)
            outcome.status = "parse_error"
            outcome.error = parsed.error
            return outcome

        logger.info(f"Received {len(parsed.matches)} valid matches from AI ({len(parsed.rejected)} rejected)")
        outcome.rejected_entries = len(parsed.rejected)
        outcome.matches_committed = await persist_matches(
            self.store, parsed.matches, ttl_days=self.settings.ttl_days
        )
        return outcome

    # Entry points ----------------------------------------------------------

    async def run(self) -> MatchRunSummary:
        """Run the whole pipeline through the LangGraph state machine."""
        async with self._lock:
            if self._graph is None:
                self._graph = self.build_graph()
            logger.info("Starting matchmaking run")
            with PerformanceMonitor("matchmaking_run", logger, threshold_ms=600000):
                final_state = await self._graph.ainvoke({"summary": MatchRunSummary()})
            return self._finish(final_state["summary"])

    async def run_sequential(self) -> MatchRunSummary:
        """Same stages as ``run`` without the graph runtime."""
        async with self._lock:
            state: MatchState = {"summary": MatchRunSummary()}
            state.update(await self.node_drain(state))
            route = self.route_after_drain(state)
            if route == "partition":
                state.update(await self.node_partition(state))
                state.update(await self.node_match(state))
            if route != "end":
                state.update(await self.node_finalize(state))
            return self._finish(state["summary"])

    def _finish(self, summary: MatchRunSummary) -> MatchRunSummary:
        summary.finished_at = datetime.utcnow()
        logger.info(
            f"Matching complete ({summary.status}). Created {summary.matches_committed} matches in total, "
            f"{summary.parse_errors} parse errors, {summary.failed_chunks} failed chunks"
        )
        return summary
