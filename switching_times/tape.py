"""
Recorded objective tape and the cache deciding when to rebuild it.

The tape is a CasADi Function ``(p_opt, constants) -> (f, grad_f)`` recorded
from one symbolic simulate-and-evaluate pass. ``p_opt`` is its differentiable
input; ``constants`` (dynamic parameters followed by the initial state) is a
second input whose numeric value is stored with the tape and can be replaced
without recording again.
"""

import logging
from enum import Enum

import numpy as np
from casadi import MX, Function, gradient

from .exceptions import IntegrationError, TapeError

logger = logging.getLogger(__name__)


class TapeState(Enum):
    VALID = "valid"
    NEEDS_PARAMETER_REFRESH = "needs_parameter_refresh"
    NEEDS_RETAPE = "needs_retape"


class ObjectiveTape:
    """
    A recorded objective together with the current values of its constants.
    """
    def __init__(self, function, constants):
        self.function = function
        self.n_inputs = function.size1_in(0)
        self.n_constants = function.size1_in(1)
        self._constants = None
        self.refresh_constants(constants)

    @classmethod
    def record(cls, recorder, n_inputs, constants):
        """
        Record ``recorder(inputs, constants)`` with symbolic arguments.

        ``recorder`` must return a scalar expression of both arguments.
        """
        constants = np.asarray(constants, dtype=float).flatten()
        if n_inputs <= 0:
            raise TapeError(f"Tape needs at least one input, got {n_inputs}.")

        inputs_sym = MX.sym('p_opt', n_inputs)
        constants_sym = MX.sym('p_dynamic_x0', constants.size)
        try:
            out = recorder(inputs_sym, constants_sym)
            if out.numel() != 1:
                raise TapeError(f"Recorded objective must be scalar, got {out.shape}.")
            function = Function(
                'objective_tape',
                [inputs_sym, constants_sym],
                [out, gradient(out, inputs_sym)],
                ['p_opt', 'p_dynamic_x0'],
                ['f', 'grad_f']
            )
        except TapeError:
            raise
        except (RuntimeError, ValueError, IndexError, NotImplementedError) as e:
            raise TapeError(f"Recording the objective tape failed: {e}") from e
        return cls(function, constants)

    @property
    def constants(self):
        return self._constants.copy()

    def refresh_constants(self, values):
        """Replace the embedded constants in place; sizes must not change."""
        values = np.asarray(values, dtype=float).flatten()
        if values.size != self.n_constants:
            raise TapeError(
                f"Tape expects {self.n_constants} constants, got {values.size}. A retape is required."
            )
        self._constants = values.copy()

    def _call(self, inputs):
        inputs = np.asarray(inputs, dtype=float).flatten()
        if inputs.size != self.n_inputs:
            raise TapeError(f"Tape expects {self.n_inputs} inputs, got {inputs.size}.")
        f, grad_f = self.function(inputs, self._constants)
        return float(f), grad_f.full().flatten()

    def value(self, inputs):
        return self._call(inputs)[0]

    def jacobian(self, inputs):
        """Gradient of the recorded objective with respect to the inputs."""
        grad_f = self._call(inputs)[1]
        if not np.all(np.isfinite(grad_f)):
            raise IntegrationError(f"Non-finite objective gradient at p_opt={inputs}.")
        return grad_f


class DifferentiationCache:
    """
    Owns the objective tape and decides, per gradient request, whether to reuse
    it, refresh its constants or record it again.

    Structural changes (sizes of the recorded vectors, the horizon) require a
    retape. New values of the constants only require a refresh.
    """
    def __init__(self, recorder):
        self.recorder = recorder
        self.tape = None
        self.state = TapeState.NEEDS_RETAPE
        self.n_retapes = 0
        self.n_refreshes = 0

    @property
    def needs_retape(self):
        return self.state is TapeState.NEEDS_RETAPE

    @property
    def needs_parameter_refresh(self):
        return self.state is TapeState.NEEDS_PARAMETER_REFRESH

    def invalidate_structure(self):
        self.state = TapeState.NEEDS_RETAPE

    def invalidate_parameters(self):
        # A pending retape already embeds the newest constants.
        if self.state is TapeState.VALID:
            self.state = TapeState.NEEDS_PARAMETER_REFRESH

    def gradient(self, p_opt, constants):
        p_opt = np.asarray(p_opt, dtype=float).flatten()
        if self.state is TapeState.NEEDS_RETAPE:
            logger.info(
                f"Recording objective tape ({p_opt.size} inputs, {np.size(constants)} constants)."
            )
            self.tape = ObjectiveTape.record(self.recorder, p_opt.size, constants)
            self.n_retapes += 1
        elif self.state is TapeState.NEEDS_PARAMETER_REFRESH:
            logger.debug("Refreshing constants of the objective tape.")
            self.tape.refresh_constants(constants)
            self.n_refreshes += 1
        self.state = TapeState.VALID
        return self.tape.jacobian(p_opt)
