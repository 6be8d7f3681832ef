import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .allowlist import AllowlistStore
from .corroboration import HistoryCorroborator
from .lexicon import Lexicon
from .rules import ConfidenceRule, default_rules, passes_threshold, score_draft
from .state import Candidate, CandidateDraft, ExtractionConfig, Priority, ScanContext
from .top_picks import TopPicksParser

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r'(?<![A-Za-z0-9])([$#]?)([A-Z]{1,5})(?![A-Za-z0-9])')
ADJACENCY_SEPARATORS = frozenset(' \t\n\r/,')
EMOJI_JOINERS = frozenset('\u200d\ufe0e\ufe0f')


def _is_emoji(char: str) -> bool:
    return char in EMOJI_JOINERS or unicodedata.category(char) in ('So', 'Sk')


def is_adjacency_gap(gap: str) -> bool:
    """True when only whitespace, '/', ',' or emoji sit between two tokens"""
    return all(c in ADJACENCY_SEPARATORS or c.isspace() or _is_emoji(c) for c in gap)


@dataclass(frozen=True)
class PassState:
    """Outcome of the local passes, before finalization"""
    context: ScanContext
    accepted: Tuple[CandidateDraft, ...] = ()
    rejected_letters: Tuple[CandidateDraft, ...] = ()


def scan_tokens(text: str) -> List[CandidateDraft]:
    """Pattern scan: every maximal 1-5 uppercase run with its optional $/# prefix"""
    return [
        CandidateDraft(ticker=m.group(2), offset=m.start(2), prefix=m.group(1))
        for m in TOKEN_PATTERN.finditer(text)
    ]


def finalize(candidates: Iterable[Candidate], cap: Optional[int] = None) -> List[Candidate]:
    """
    Deduplicate by ticker keeping max confidence (ties go to the better
    priority, then the earlier offset), then order by priority and descending
    confidence.
    """
    best: Dict[str, Candidate] = {}
    for candidate in candidates:
        current = best.get(candidate.ticker)
        if current is None or candidate.dedup_key() < current.dedup_key():
            best[candidate.ticker] = candidate
    ordered = sorted(best.values(), key=Candidate.sort_key)
    return ordered[:cap] if cap is not None else ordered


class SymbolExtractor:
    """
    Multi-pass ticker extraction.

    Pass 1 scans and scores ticker-shaped tokens against the lexicon.
    Pass 2 recovers rejected single letters from local context.
    Pass 3 (async, optional) recovers prefixed single letters that earlier
    messages in the configured channels also mention.
    """

    def __init__(self,
                 lexicon: Optional[Lexicon] = None,
                 config: Optional[ExtractionConfig] = None,
                 allowlist_store: Optional[AllowlistStore] = None,
                 corroborator: Optional[HistoryCorroborator] = None,
                 rules: Optional[Sequence[ConfidenceRule]] = None,
                 corroboration_bonus: Optional[float] = None):
        self.lexicon = lexicon or Lexicon.default()
        self.config = config or ExtractionConfig()
        self.allowlist_store = allowlist_store
        self.corroborator = corroborator
        self.rules = list(rules) if rules is not None else default_rules(self.lexicon, self.config)
        if corroboration_bonus is None:
            corroboration_bonus = corroborator.config.bonus if corroborator else 0.3
        self.corroboration_bonus = corroboration_bonus
        self.top_picks_parser = TopPicksParser(self.lexicon)
        self.stats = {
            'texts_scanned': 0,
            'tokens_seen': 0,
            'candidates_accepted': 0,
            'letters_recovered': 0,
            'letters_corroborated': 0,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, text: str, top_picks_context: bool = False) -> List[Candidate]:
        """Passes 1-2 and finalization for free-form text"""
        state = self.run_local_passes(text, top_picks_context)
        return self._finish(state.accepted)

    async def extract_with_history(self, text: str, top_picks_context: bool = False,
                                   stop_event=None) -> List[Candidate]:
        """Like ``extract`` plus Pass 3 when a corroborator is configured"""
        state = self.run_local_passes(text, top_picks_context)
        accepted = list(state.accepted)

        prefixed = [d for d in state.rejected_letters if d.prefix]
        if prefixed and self.corroborator is not None:
            confirmed = await self.corroborator.corroborate({d.ticker for d in prefixed}, stop_event)
            for draft in prefixed:
                if draft.ticker in confirmed:
                    scored = score_draft(draft, state.context, self.rules, self.config.base_confidence)
                    accepted.append(scored.adjust('history', self.corroboration_bonus).clamped())
                    self.stats['letters_corroborated'] += 1
                    logger.debug(f"Admitted {draft.ticker} via history corroboration")
        return self._finish(accepted)

    def extract_top_picks(self, text: str) -> List[Candidate]:
        """Structured top-picks path; never truncated"""
        return finalize(self.top_picks_parser.parse_candidates(text))

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def build_context(self, text: str, drafts: Sequence[CandidateDraft],
                      top_picks_context: bool = False) -> ScanContext:
        allowlisted = frozenset(
            d.ticker for d in drafts
            if self.lexicon.is_allowlisted(d.ticker)
            or (self.allowlist_store is not None and self.allowlist_store.is_allowed(d.ticker))
        )
        return ScanContext(text=text, lowered=text.lower(), allowlisted=allowlisted,
                           top_picks_context=top_picks_context)

    def run_local_passes(self, text: str, top_picks_context: bool = False) -> PassState:
        if not text or not isinstance(text, str):
            return PassState(context=ScanContext(text='', lowered=''))

        self.stats['texts_scanned'] += 1
        drafts = scan_tokens(text)
        self.stats['tokens_seen'] += len(drafts)
        context = self.build_context(text, drafts, top_picks_context)

        accepted, rejected_letters = self.pattern_pass(drafts, context)
        recovered, still_rejected = self.context_pass(accepted, rejected_letters, context)
        self.stats['letters_recovered'] += len(recovered)
        return PassState(context=context,
                         accepted=tuple(accepted) + tuple(recovered),
                         rejected_letters=tuple(still_rejected))

    def pattern_pass(self, drafts: Sequence[CandidateDraft],
                     context: ScanContext) -> Tuple[List[CandidateDraft], List[CandidateDraft]]:
        """Pass 1: gazetteer validation and confidence scoring"""
        accepted, rejected_letters = [], []
        for draft in drafts:
            if not self.lexicon.is_valid_symbol(draft.ticker, context.allowlisted):
                if draft.is_single_letter and draft.ticker not in self.lexicon.disallowed:
                    rejected_letters.append(draft)
                else:
                    logger.debug(f"Rejected {draft.ticker}: gazetteer")
                continue

            scored = score_draft(draft, context, self.rules, self.config.base_confidence)
            if passes_threshold(scored, context, self.config):
                accepted.append(scored)
            else:
                logger.debug(f"Rejected {draft.ticker}: confidence {scored.confidence:.2f}")
        return accepted, rejected_letters

    def context_pass(self, accepted: Sequence[CandidateDraft],
                     rejected_letters: Sequence[CandidateDraft],
                     context: ScanContext) -> Tuple[List[CandidateDraft], List[CandidateDraft]]:
        """Pass 2: single-letter recovery from local context"""
        cfg = self.config
        trusted = len({d.ticker for d in accepted}) >= cfg.context_trust_min_accepted \
            or context.top_picks_context
        anchors = [d for d in accepted if not d.is_single_letter]

        recovered, still_rejected = [], []
        for draft in rejected_letters:
            if trusted:
                reason, bonus = 'context_trust', cfg.context_trust_bonus
            elif draft.prefix and cfg.prefix_recovery:
                reason, bonus = 'prefix_recovery', cfg.prefix_recovery_bonus
            elif self._is_adjacent(draft, anchors, context.text):
                reason, bonus = 'adjacency', cfg.adjacency_bonus
            else:
                still_rejected.append(draft)
                continue

            scored = score_draft(draft, context, self.rules, cfg.base_confidence)
            recovered.append(scored.adjust(reason, bonus).clamped())
            logger.debug(f"Recovered single letter {draft.ticker} via {reason}")
        return recovered, still_rejected

    @staticmethod
    def _is_adjacent(draft: CandidateDraft, anchors: Sequence[CandidateDraft], text: str) -> bool:
        for anchor in anchors:
            if anchor.end <= draft.start:
                gap = text[anchor.end:draft.start]
            elif draft.end <= anchor.start:
                gap = text[draft.end:anchor.start]
            else:
                continue
            if is_adjacency_gap(gap):
                return True
        return False

    def _finish(self, drafts: Iterable[CandidateDraft]) -> List[Candidate]:
        candidates = finalize(
            (d.to_candidate(Priority.REGULAR) for d in drafts),
            cap=self.config.max_freeform_candidates,
        )
        self.stats['candidates_accepted'] += len(candidates)
        return candidates

    def get_stats(self) -> Dict[str, int]:
        return self.stats.copy()
