"""
Gate Module - Black Box Interface

Purpose: Turn an asynchronous completion callback into a bounded blocking wait
Interface: CompletionGate.completed(), failed(), cancelled(), wait()
Hidden: Locking and event signalling

Can be replaced with any single-fire future or channel.
"""

from .gate import CompletionGate, GateSignal, SignalKind

__all__ = ["CompletionGate", "GateSignal", "SignalKind"]
