"""
TransactionOrchestrator - sequences one funds-moving flow.

Validating -> Snapshotting(before) -> Estimating -> Guarding ->
AwaitingConfirmation -> Submitting -> AwaitingMined ->
AwaitingCrossLayer (cross-layer flows only) -> Snapshotting(after) -> Done.
Any failure moves the run to Aborted and propagates; nothing is retried.
"""
import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from web3.exceptions import TimeExhausted

from .chain import ChainClient, Signer
from .console import Reporter
from .estimator import CostEstimator
from .exceptions import (
    ArbStylusError,
    ConfigError,
    CrossLayerFailure,
    NetworkError,
    SubmissionError,
    ValidationError,
    WaitTimeoutError,
)
from .guard import BalanceGuard, ensure_signer_matches
from .models import (
    BalanceSnapshot,
    CostEnvelope,
    CrossLayerStatus,
    FlowKind,
    FlowRequest,
    Layer,
    TransactionOutcome,
)

# Cancellation window before anything is sent; not configurable
CONFIRMATION_DELAY_SECONDS = 3.0


class FlowState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    SNAPSHOT_BEFORE = "Snapshotting(before)"
    ESTIMATING = "Estimating"
    GUARDING = "Guarding"
    AWAITING_CONFIRMATION = "AwaitingConfirmation"
    SUBMITTING = "Submitting"
    AWAITING_MINED = "AwaitingMined"
    AWAITING_CROSS_LAYER = "AwaitingCrossLayer"
    SNAPSHOT_AFTER = "Snapshotting(after)"
    DONE = "Done"
    ABORTED = "Aborted"


class TransactionOrchestrator:
    """
    Runs a FlowRequest against the chain, bridge and signer it is given.

    Args:
        chains: Chain client per layer the flow touches
        signer: Account that signs the submitted transaction
        estimator: Produces the cost envelope
        guard: Checks the source balance against the envelope
        reporter: Console output
        bridge: Required for cross-layer flows
        tx_timeout: Seconds to wait for the transaction to be mined
        cross_layer_timeout: Seconds to wait for the cross-layer message
        poll_interval: Seconds between receipt polls
        sleep: Sleep function, injectable for tests
    """

    def __init__(
        self,
        chains: Dict[Layer, ChainClient],
        signer: Optional[Signer],
        estimator: CostEstimator,
        guard: BalanceGuard,
        reporter: Reporter,
        bridge: Optional[Any] = None,
        tx_timeout: float = 120.0,
        cross_layer_timeout: float = 900.0,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        self.chains = chains
        self.signer = signer
        self.estimator = estimator
        self.guard = guard
        self.reporter = reporter
        self.bridge = bridge
        self.tx_timeout = tx_timeout
        self.cross_layer_timeout = cross_layer_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

        self.state = FlowState.IDLE
        self.history: List[FlowState] = []
        self.snapshots: Dict[str, List[BalanceSnapshot]] = {"before": [], "after": []}
        self.envelope: Optional[CostEnvelope] = None

    def _enter(self, state: FlowState) -> None:
        self.logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self, request: FlowRequest) -> TransactionOutcome:
        """
        Execute one flow end to end.

        Returns:
            TransactionOutcome of the submitted transaction

        Raises:
            ConfigError: Missing signer, signer/source mismatch, missing collaborator
            EstimationError: Cost could not be estimated
            InsufficientFundsError: Source balance below the envelope total
            SubmissionError: Signing or sending failed, or the transaction reverted
            WaitTimeoutError: Mined or cross-layer wait exceeded its timeout
            CrossLayerFailure: The cross-layer message failed on the child chain
        """
        try:
            return self._run(request)
        except BaseException:
            self._enter(FlowState.ABORTED)
            raise

    def _run(self, request: FlowRequest) -> TransactionOutcome:
        self._enter(FlowState.VALIDATING)
        chain = self._validate(request)

        self._enter(FlowState.SNAPSHOT_BEFORE)
        self.snapshots["before"] = self._snapshot(request, "before")

        self._enter(FlowState.ESTIMATING)
        envelope = self.estimator.estimate(request.kind, request.amount, request)
        self.envelope = envelope
        self.reporter.envelope(envelope)

        self._enter(FlowState.GUARDING)
        self.guard.ensure_sufficient(chain, request.source, envelope)

        self._enter(FlowState.AWAITING_CONFIRMATION)
        self._confirm(request)

        self._enter(FlowState.SUBMITTING)
        tx_hash = self._submit(chain, envelope)
        self.reporter.sent(tx_hash)

        self._enter(FlowState.AWAITING_MINED)
        receipt = self._await_mined(chain, tx_hash)
        outcome = TransactionOutcome(tx_hash=tx_hash, confirmed_block=receipt["blockNumber"])
        self.reporter.mined(outcome.confirmed_block)

        if request.kind.is_cross_layer:
            self._enter(FlowState.AWAITING_CROSS_LAYER)
            outcome = self._await_cross_layer(receipt, outcome)

        if outcome.cross_layer_status in (CrossLayerStatus.NONE, CrossLayerStatus.COMPLETED):
            self._follow_up(request)

        self._enter(FlowState.SNAPSHOT_AFTER)
        self.snapshots["after"] = self._snapshot(request, "after")

        if outcome.cross_layer_status is CrossLayerStatus.FAILED:
            raise CrossLayerFailure(
                f"Cross-layer message failed; the L1 transaction {tx_hash} is final",
                outcome
            )
        if outcome.timed_out:
            raise WaitTimeoutError(
                f"Timed out after {self.cross_layer_timeout}s waiting for the cross-layer message",
                outcome
            )

        self._enter(FlowState.DONE)
        return outcome

    def _tx_layer(self, kind: FlowKind) -> Layer:
        return Layer.PARENT if kind.is_cross_layer else Layer.CHILD

    def _validate(self, request: FlowRequest) -> ChainClient:
        if self.signer is None:
            raise ConfigError("SOURCE_PRIVATE_KEY is required for this command")
        ensure_signer_matches(self.signer.address, request.source)
        if request.amount < 0:
            raise ValidationError("Amount must not be negative")

        layer = self._tx_layer(request.kind)
        chain = self.chains.get(layer)
        if chain is None:
            raise ConfigError(f"No {layer.value} provider configured")
        if request.kind.is_cross_layer and self.bridge is None:
            raise ConfigError("Cross-layer flows need the L1 bridge (set L1_RPC_URL)")
        return chain

    def _snapshot(self, request: FlowRequest, when: str) -> List[BalanceSnapshot]:
        if request.snapshots:
            self.reporter.info(f"\nBalances {when}:")
        taken = []
        for target in request.snapshots:
            chain = self.chains.get(target.layer)
            try:
                if chain is None:
                    raise ConfigError(f"No {target.layer.value} provider configured")
                snapshot = BalanceSnapshot(
                    address=target.address,
                    amount=chain.get_balance(target.address),
                    label=target.label,
                    layer=target.layer
                )
            except Exception as e:
                self.logger.warning(f"Balance snapshot ({when}) failed for {target.label}: {e}")
                self.reporter.warn(f"Could not read {target.label} balance: {e}")
                continue
            self.reporter.balance(snapshot)
            taken.append(snapshot)
        return taken

    def _confirm(self, request: FlowRequest) -> None:
        self.reporter.confirm(request.summary, CONFIRMATION_DELAY_SECONDS)
        try:
            self._sleep(CONFIRMATION_DELAY_SECONDS)
        except KeyboardInterrupt:
            self.logger.info("Cancelled during the confirmation window; nothing was sent")
            raise

    def _submit(self, chain: ChainClient, envelope: CostEnvelope) -> str:
        try:
            tx = {k: v for k, v in envelope.prepared_tx.items() if k != "from"}
            tx.update({
                "nonce": chain.transaction_count(self.signer.address),
                "gas": envelope.gas_limit,
                "gasPrice": envelope.gas_price,
                "chainId": chain.chain_id(),
            })
            self.logger.debug(f"Submitting tx with nonce {tx['nonce']} to {tx.get('to')}")
        except Exception as e:
            raise SubmissionError(f"Failed to prepare transaction: {e}") from e

        try:
            signed = self.signer.sign_transaction(tx)
        except Exception as e:
            self.logger.error(f"Transaction signing failed: {e}")
            raise SubmissionError(f"Failed to sign transaction: {e}") from e

        try:
            return chain.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            self.logger.error(f"Failed to send transaction: {e}")
            raise SubmissionError(f"Failed to send transaction: {e}") from e

    def _await_mined(self, chain: ChainClient, tx_hash: str) -> Dict[str, Any]:
        try:
            receipt = chain.wait_for_receipt(tx_hash, timeout=self.tx_timeout, poll_latency=self.poll_interval)
        except TimeExhausted as e:
            outcome = TransactionOutcome(tx_hash=tx_hash, timed_out=True)
            raise WaitTimeoutError(
                f"Transaction {tx_hash} not mined after {self.tx_timeout}s", outcome
            ) from e
        except Exception as e:
            raise NetworkError(f"Error while waiting for {tx_hash}: {e}") from e

        if receipt["status"] != 1:
            raise SubmissionError(
                f"Transaction {tx_hash} reverted in block {receipt['blockNumber']}", tx_hash=tx_hash
            )
        return receipt

    def _await_cross_layer(self, receipt: Dict[str, Any], outcome: TransactionOutcome) -> TransactionOutcome:
        try:
            messages = self.bridge.get_messages(receipt)
        except Exception as e:
            raise NetworkError(f"Could not read L1-to-L2 messages: {e}") from e

        if not messages:
            self.reporter.error("No L1-to-L2 messages found in the transaction")
            return outcome.model_copy(update={"cross_layer_status": CrossLayerStatus.FAILED})

        message = messages[0]
        self.reporter.info(
            f"\nL1-to-L2 message {message.message_number} found "
            f"(L2 tx {message.child_tx_id}). Waiting for execution on L2..."
        )
        try:
            status, child_tx_hash = self.bridge.wait_for_status(message, timeout=self.cross_layer_timeout)
        except ArbStylusError:
            raise
        except Exception as e:
            raise NetworkError(f"Error while polling L1-to-L2 message status: {e}") from e

        self.reporter.cross_layer(status, child_tx_hash)
        return outcome.model_copy(update={
            "cross_layer_status": status,
            "child_tx_hash": child_tx_hash,
            "timed_out": status is CrossLayerStatus.TIMED_OUT,
        })

    def _follow_up(self, request: FlowRequest) -> None:
        if request.follow_up is None:
            return
        try:
            request.follow_up()
        except Exception as e:
            self.logger.warning(f"Follow-up after {request.kind.value} failed: {e}")
            self.reporter.warn(f"Could not retrieve updated state: {e}")
