"""EVM execution tracers, trace filtering with a block cache, debug trace selection and transaction pool views."""

__version__ = "0.1.0"