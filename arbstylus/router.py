"""
CommandRouter - maps a command keyword to one orchestrated flow.
"""
import logging
import time
from typing import Callable, Dict, Optional, Sequence

from eth_account import Account

from .addresses import AddressBook
from .bridge import RetryableBridge
from .chain import ChainClient, Signer
from .config import NetworkConfig, NetworkDescriptor, Settings
from .console import Reporter
from .contracts import CounterContract, available_functions, is_read_only
from .estimator import CostEstimator
from .exceptions import ArbStylusError, ConfigError, NetworkError, ValidationError
from .guard import BalanceGuard
from .models import BalanceSnapshot, FlowKind, FlowRequest, Layer, SnapshotTarget, TransactionOutcome
from .orchestrator import TransactionOrchestrator
from .parser import parse_call_args, split_amount_and_address

ChainFactory = Callable[[str, Layer], ChainClient]


def _connect(rpc_url: str, layer: Layer) -> ChainClient:
    return ChainClient.from_url(rpc_url, layer=layer)


class CommandRouter:
    """
    Builds the collaborators for one invocation and runs the requested flow.

    The network descriptor is resolved once here and handed to every
    component that needs it; chain clients are created lazily so commands
    that fail validation never open a connection.

    Args:
        settings: Process configuration
        network: Network descriptor (default: ``settings.network`` from the bundled definitions)
        reporter: Console output
        chain_factory: ``(rpc_url, layer) -> ChainClient``, injectable for tests
        sleep: Sleep function used for the confirmation window and polling
    """

    def __init__(
        self,
        settings: Settings,
        network: Optional[NetworkDescriptor] = None,
        reporter: Optional[Reporter] = None,
        chain_factory: Optional[ChainFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None
    ):
        self.settings = settings
        self.network = network or NetworkConfig.get_network(settings.network)
        self.reporter = reporter or Reporter.for_network(self.network)
        self.addresses = AddressBook(settings)
        self._chain_factory = chain_factory or _connect
        self._sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

        self._chains: Dict[Layer, ChainClient] = {}
        self._bridge: Optional[RetryableBridge] = None

        self.routes: Dict[str, Callable[[Sequence[str]], Optional[TransactionOutcome]]] = {
            "l2balance": self.l2balance,
            "l2transfer": self.l2transfer,
            "l1deposit": self.l1deposit,
            "callstylus": self.callstylus,
            "l1tostylus": self.l1tostylus,
        }

    def dispatch(self, command: str, args: Sequence[str] = ()) -> Optional[TransactionOutcome]:
        """
        Run ``command`` with its free-form arguments.

        Raises:
            ValidationError: If the command is unknown
            NetworkError: If an RPC call fails outside the flow's own error mapping
        """
        route = self.routes.get(command)
        if route is None:
            raise ValidationError(
                f"Unknown command: {command}. Available commands: {', '.join(self.routes)}"
            )
        self.logger.debug(f"Dispatching {command} with args {list(args)}")
        try:
            return route(list(args))
        except ArbStylusError:
            raise
        except Exception as e:
            self.logger.error(f"{command} failed: {e}")
            raise NetworkError(f"Error during {command}: {e}") from e

    # ---------------------------------------------------------------- collaborators

    def chain(self, layer: Layer) -> ChainClient:
        """Chain client for ``layer``; the L1 endpoint must be configured explicitly"""
        if layer not in self._chains:
            if layer is Layer.PARENT:
                if not self.settings.l1_rpc_url:
                    raise ConfigError(
                        "L1_RPC_URL environment variable is required (set it in your .env file)"
                    )
                url = self.settings.l1_rpc_url
            else:
                url = self.settings.rpc_url
            self._chains[layer] = self._chain_factory(url, layer)
        return self._chains[layer]

    def bridge(self) -> RetryableBridge:
        if self._bridge is None:
            self._bridge = RetryableBridge(
                self.chain(Layer.PARENT),
                self.chain(Layer.CHILD),
                self.network,
                poll_interval=self.settings.poll_interval,
                sleep=self._sleep
            )
        return self._bridge

    def signer(self) -> Signer:
        key = self.settings.private_key()
        if not key:
            raise ConfigError(
                "SOURCE_PRIVATE_KEY is required for this command (set it in your .env file)"
            )
        try:
            return Account.from_key(key)
        except (ValueError, TypeError) as e:
            raise ConfigError("SOURCE_PRIVATE_KEY is not a valid private key") from e

    def _check_child_network(self) -> None:
        chain_id = self.chain(Layer.CHILD).chain_id()
        if chain_id != self.network.child.chain_id:
            raise ConfigError(
                f"RPC_URL serves chain {chain_id}, but network '{self.network.key}' "
                f"expects {self.network.child.chain_id}"
            )

    def _orchestrator(self, cross_layer: bool) -> TransactionOrchestrator:
        signer = self.signer()
        child = self.chain(Layer.CHILD)
        chains = {Layer.CHILD: child}
        parent = bridge = None
        if cross_layer:
            parent = self.chain(Layer.PARENT)
            self._check_child_network()
            bridge = self.bridge()
            chains[Layer.PARENT] = parent

        return TransactionOrchestrator(
            chains=chains,
            signer=signer,
            estimator=CostEstimator(child, parent=parent, bridge=bridge),
            guard=BalanceGuard(),
            reporter=self.reporter,
            bridge=bridge,
            tx_timeout=self.settings.tx_timeout,
            cross_layer_timeout=self.settings.cross_layer_timeout,
            poll_interval=self.settings.poll_interval,
            sleep=self._sleep
        )

    def _show_networks(self, *layers: Layer) -> None:
        descriptors = {Layer.PARENT: self.network.parent, Layer.CHILD: self.network.child}
        for layer in layers:
            chain_id = self.chain(layer).chain_id()
            self.reporter.network(layer, descriptors[layer].name, chain_id, show_layer=len(layers) > 1)

    def _counter_follow_up(self, contract: CounterContract) -> Callable[[], None]:
        def show_counter() -> None:
            self.reporter.info(f"New counter value: {contract.number()}")
        return show_counter

    # ---------------------------------------------------------------- commands

    def l2balance(self, args: Sequence[str]) -> None:
        """Show the L2 balance of the source and (when known) target address"""
        self.reporter.title("Arbitrum Wallet Balance Checker")
        source, target = self.addresses.display_pair(args)

        try:
            self._show_networks(Layer.CHILD)
            child = self.chain(Layer.CHILD)
            labelled = [("Source", source)]
            if target:
                labelled.append(("Target", target))
            for label, address in labelled:
                self.reporter.balance(BalanceSnapshot(
                    address=address,
                    amount=child.get_balance(address),
                    label=label,
                    layer=Layer.CHILD
                ))
            self.reporter.info(f"Current block: {child.block_number()}")
        except ArbStylusError:
            raise
        except Exception as e:
            raise NetworkError(f"Error connecting to the Arbitrum network: {e}") from e

    def l2transfer(self, args: Sequence[str]) -> TransactionOutcome:
        """Transfer value between two L2 addresses"""
        self.reporter.title("Arbitrum Transfer Tool")
        amount, target_override = split_amount_and_address(args)
        resolved = self.addresses.resolve(
            [target_override] if target_override else [],
            need_target=True
        )
        self.reporter.info(f"Source address: {resolved.source}")
        self.reporter.info(f"Target address: {resolved.target}")
        self.reporter.info(f"Amount to transfer: {self.reporter.amount(amount)}\n")

        orchestrator = self._orchestrator(cross_layer=False)
        self._show_networks(Layer.CHILD)
        request = FlowRequest(
            kind=FlowKind.SIMPLE_TRANSFER,
            source=resolved.source,
            destination=resolved.target,
            amount=amount,
            summary=(
                f"transfer {self.reporter.amount(amount)} "
                f"from {resolved.source} to {resolved.target}"
            ),
            snapshots=[
                SnapshotTarget(Layer.CHILD, resolved.source, "Source"),
                SnapshotTarget(Layer.CHILD, resolved.target, "Target"),
            ]
        )
        return orchestrator.run(request)

    def l1deposit(self, args: Sequence[str]) -> TransactionOutcome:
        """Move value from L1 to L2; the L2 recipient defaults to the source"""
        self.reporter.title("Arbitrum L1 to L2 ETH Deposit Tool")
        amount, target_override = split_amount_and_address(args)
        resolved = self.addresses.resolve(
            [target_override] if target_override else [],
            target_defaults_to_source=True
        )
        self.reporter.info(f"Source address (L1): {resolved.source}")
        self.reporter.info(f"Target address (L2): {resolved.target}")
        self.reporter.info(f"Amount to deposit: {self.reporter.amount(amount, Layer.PARENT)}\n")

        orchestrator = self._orchestrator(cross_layer=True)
        self._show_networks(Layer.PARENT, Layer.CHILD)
        request = FlowRequest(
            kind=FlowKind.CROSS_LAYER_DEPOSIT,
            source=resolved.source,
            destination=resolved.target,
            amount=amount,
            summary=(
                f"deposit {self.reporter.amount(amount, Layer.PARENT)} "
                f"from {resolved.source} to {resolved.target}"
            ),
            snapshots=[
                SnapshotTarget(Layer.PARENT, resolved.source, "Source (L1)"),
                SnapshotTarget(Layer.CHILD, resolved.target, "Target (L2)"),
            ]
        )
        return orchestrator.run(request)

    def callstylus(self, args: Sequence[str]) -> Optional[TransactionOutcome]:
        """
        Call a Counter function on L2.

        Read-only functions are evaluated with ``eth_call``; anything else is
        signed and sent as a single L2 transaction.
        """
        self.reporter.title("Arbitrum Stylus Contract Caller")
        call = parse_call_args(args)
        resolved = self.addresses.resolve(need_contract=True)

        self._show_networks(Layer.CHILD)
        contract = CounterContract(resolved.contract, self.chain(Layer.CHILD))
        self.reporter.info(f"Contract address: {resolved.contract}")
        self.reporter.info(f"Caller address: {resolved.source}")
        self.reporter.info(f"Function: {call.display}")
        if call.value_amount:
            self.reporter.info(f"Sending value: {self.reporter.amount(call.value_amount)}")

        if is_read_only(call.name):
            result = contract.call_view(call.name, call.args)
            self.reporter.info(f"Result: {result}")
            return None

        data = contract.encode_call(call.name, call.args)
        orchestrator = self._orchestrator(cross_layer=False)
        request = FlowRequest(
            kind=FlowKind.SIMPLE_TRANSFER,
            source=resolved.source,
            destination=resolved.contract,
            amount=call.value_amount,
            data=data,
            summary=f"call {call.display} on {resolved.contract}",
            snapshots=[SnapshotTarget(Layer.CHILD, resolved.source, "Caller")],
            follow_up=self._counter_follow_up(contract)
        )
        return orchestrator.run(request)

    def l1tostylus(self, args: Sequence[str]) -> TransactionOutcome:
        """Call a state-changing Counter function on L2 through a retryable ticket sent on L1"""
        self.reporter.title("Arbitrum L1 to L2 Stylus Contract Call")
        call = parse_call_args(args)
        if is_read_only(call.name):
            raise ValidationError(
                f"{call.name}() is read-only and cannot be called from L1; "
                f"use callstylus instead. Available functions: {available_functions()}"
            )
        resolved = self.addresses.resolve(need_contract=True)

        orchestrator = self._orchestrator(cross_layer=True)
        self._show_networks(Layer.PARENT, Layer.CHILD)
        contract = CounterContract(resolved.contract, self.chain(Layer.CHILD))
        data = contract.encode_call(call.name, call.args)
        self.reporter.info(f"Contract address: {resolved.contract}")
        self.reporter.info(f"Function: {call.display}")
        if call.value_amount:
            self.reporter.info(f"Sending value: {self.reporter.amount(call.value_amount)} to the contract on L2")

        request = FlowRequest(
            kind=FlowKind.CROSS_LAYER_CALL,
            source=resolved.source,
            destination=resolved.contract,
            amount=call.value_amount,
            data=data,
            summary=f"call {call.display} on {resolved.contract} from L1",
            snapshots=[
                SnapshotTarget(Layer.PARENT, resolved.source, "Source (L1)"),
                SnapshotTarget(Layer.CHILD, resolved.source, "Source (L2)"),
            ],
            follow_up=self._counter_follow_up(contract)
        )
        return orchestrator.run(request)
