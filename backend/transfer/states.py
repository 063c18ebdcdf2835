"""
States - the phases of one transfer attempt
Each state does ONE thing (Single Responsibility)
"""

import time
from typing import Optional

from core.bgapi import ProtocolFault
from core.types import ConnectionState
from .state_machine import State, StateContext, StateResult


class ResetAdapterState(State):
    """End any running GAP procedure and drop stale connections"""
    name = "RESET_ADAPTER"

    def on_enter(self, context: StateContext) -> StateResult:
        self.log(context, "HalfDuplexCommunication Started")
        radio = context.radio

        radio.send_command(context.transport, radio.ble_cmd_gap_end_procedure())
        context.writer.wait_idle()
        time.sleep(context.settings.reset_delay)

        radio.send_command(context.transport, radio.ble_cmd_connection_disconnect(0))
        context.writer.wait_idle()
        time.sleep(context.settings.reset_delay)
        return StateResult.SUCCESS

    def get_next_state(self, context: StateContext, result: StateResult) -> Optional[State]:
        return DiscoveringState()


class DiscoveringState(State):
    """Scan until an adapter callback reports the link CONNECTED"""
    name = "DISCOVERING"

    def on_enter(self, context: StateContext) -> StateResult:
        self.log(context, "Device searching...")
        context.link.reset()
        radio = context.radio
        radio.send_command(context.transport, radio.ble_cmd_gap_discover(1))

        timeout = context.settings.discovery_timeout
        deadline = None if timeout is None else time.monotonic() + timeout
        while context.link.state != ConnectionState.CONNECTED:
            context.check_cancelled()
            if deadline is not None and time.monotonic() > deadline:
                raise ProtocolFault(f"No device connected within {timeout}s")
            time.sleep(context.settings.pacing.poll_interval)

        self.log(context, "Device Connected")
        if context.on_connected:
            context.on_connected()
        return StateResult.SUCCESS

    def get_next_state(self, context: StateContext, result: StateResult) -> Optional[State]:
        return StreamingState()


class StreamingState(State):
    """Send every queued command, in order"""
    name = "STREAMING"

    def on_enter(self, context: StateContext) -> StateResult:
        context.sent_count = 0
        for command in context.commands:
            context.check_cancelled()
            self.log(context, f"【{command.name}】 is sending...")
            context.writer.write_command(command)
            self.log(context, f"【{command.name}】 send complete.")

            context.sent_count += 1
            if context.on_command_sent:
                context.on_command_sent(context.sent_count)
            time.sleep(context.settings.settle_delay)
        return StateResult.SUCCESS

    def get_next_state(self, context: StateContext, result: StateResult) -> Optional[State]:
        return CompleteState()


class CompleteState(State):
    """All commands delivered - mark the device done"""
    name = "COMPLETE"

    def on_enter(self, context: StateContext) -> StateResult:
        self.log(context, "Communication Finished")
        context.link.advance(ConnectionState.SEND_COMPLETED)
        context.completed = True
        if context.on_finished:
            context.on_finished()
        return StateResult.SUCCESS

    def get_next_state(self, context: StateContext, result: StateResult) -> Optional[State]:
        return None  # End of attempt


# === Workflow factory ===

def create_transfer_workflow() -> State:
    """Create the initial state for one transfer attempt"""
    return ResetAdapterState()
