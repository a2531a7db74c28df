""" Build the dependency graph for a composition pass. Every edge A -> B in
    the graph means that A must be strictly earlier (further out) than B in
    the final processing chain; this is the one direction convention used
    by :mod:`mrepl.middleware.linearize`.
"""

from .descriptor import Middleware


class Graph:
    """ A directed graph over :class:`Middleware` instances. Nodes are kept
        in registration order, which the linearizer uses as its tie-break.

        :ivar nodes: Tuple of middleware, in registration order.
        :ivar edges: Set of (before, after) tuples.
    """

    def __init__(self, nodes=()):

        self.nodes = tuple(nodes)
        self.edges = set()
        self._successors = dict()
        self._predecessors = dict()
        self._position = dict()

        for position, node in enumerate(self.nodes):
            self._successors[node] = list()
            self._predecessors[node] = list()
            self._position[node] = position


    def __contains__(self, node):
        return node in self._position


    def __len__(self):
        return len(self.nodes)


    def add_edge(self, before, after):
        """ Record that *before* must precede *after*. Duplicate edges are
            ignored, as are self edges.
        """

        if before is after:
            return

        edge = (before, after)
        if edge in self.edges:
            return

        self.edges.add(edge)
        self._successors[before].append(after)
        self._predecessors[after].append(before)


    def successors(self, node):
        return tuple(self._successors[node])


    def predecessors(self, node):
        return tuple(self._predecessors[node])


    def position(self, node):
        return self._position[node]


# end of class Graph



def build(registry):
    """ Return a :class:`Graph` for every middleware in *registry*.

        A ``requires`` reference R on middleware M adds the edge R -> M; an
        ``expects`` reference E on M adds M -> E. A reference that is an
        operation name resolves to every middleware in this pass that
        handles the operation, and one edge is added for each of them. A
        reference that resolves to nothing in this pass adds no edge; the
        dependency is vacuously satisfied.
    """

    entries = registry.descriptors()
    graph = Graph(middleware for middleware, descriptor in entries)

    # Resolve operation names once for the whole pass.

    handlers = dict()
    for middleware, descriptor in entries:
        for op in descriptor.handles.keys():
            try:
                handlers[op].append(middleware)
            except KeyError:
                handlers[op] = [middleware]

    for middleware, descriptor in entries:

        for reference in _ordered(descriptor.requires):
            for resolved in _resolve(reference, handlers, graph):
                graph.add_edge(resolved, middleware)

        for reference in _ordered(descriptor.expects):
            for resolved in _resolve(reference, handlers, graph):
                graph.add_edge(middleware, resolved)

    return graph



def _resolve(reference, handlers, graph):

    if isinstance(reference, Middleware):
        if reference in graph:
            return (reference,)
        return ()

    return handlers.get(reference, ())



def _ordered(references):
    """ Iterate over a frozenset of references in a stable order, so that
        edge insertion does not depend on hash ordering.
    """

    names = list()
    units = list()

    for reference in references:
        if isinstance(reference, Middleware):
            units.append(reference)
        else:
            names.append(reference)

    names.sort()
    units.sort(key=lambda unit: str(unit.name))
    return units + names


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
