""" Middleware composition: descriptors, the registry, the dependency graph,
    the linearizer, and the handler composer. The usual entry point is
    :func:`stack`, which turns a :class:`Registry` into a composed
    :class:`Chain` in one step.
"""

from .descriptor import Descriptor, Middleware, OpSpec
from .registry import Registry, union
from .graph import Graph, build
from .linearize import CyclicDependency, linearize
from .compose import Chain, Layer, compose, stack, unknown_op


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
