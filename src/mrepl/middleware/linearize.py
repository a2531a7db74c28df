""" Topological sort of the middleware dependency graph into one total,
    deterministic processing order.
"""

import heapq


class CyclicDependency(Exception):
    """ The ordering constraints for a set of middleware cannot be satisfied.

        :ivar members: Every middleware that could not be ordered, in
                       registration order; this includes the members of
                       any cycle, and anything ordered after one.
        :ivar cycle: One concrete cycle, as a list of middleware where each
                     element must precede the next, and the last must
                     precede the first.
    """

    def __init__(self, members, cycle):

        self.members = list(members)
        self.cycle = list(cycle)

        names = [str(unit.name) for unit in self.cycle]
        names.append(names[0])
        text = 'cyclic middleware dependency: ' + ' -> '.join(names)

        others = [str(unit.name) for unit in self.members if unit not in self.cycle]
        if others:
            text += ' (also unordered: ' + ', '.join(others) + ')'

        Exception.__init__(self, text)


# end of class CyclicDependency



def linearize(graph):
    """ Return a list of every node in *graph* such that for every edge
        A -> B, A appears before B. This is Kahn's algorithm; whenever more
        than one node is ready, the one registered earliest goes first, so
        the same graph always yields the same order.

        :class:`CyclicDependency` is raised if the graph contains a cycle;
        no partial order is returned.
    """

    remaining = dict()
    ready = list()

    for node in graph.nodes:
        count = len(graph.predecessors(node))
        remaining[node] = count
        if count == 0:
            heapq.heappush(ready, (graph.position(node), node))

    order = list()

    while ready:
        position, node = heapq.heappop(ready)
        order.append(node)

        for successor in graph.successors(node):
            remaining[successor] -= 1
            if remaining[successor] == 0:
                heapq.heappush(ready, (graph.position(successor), successor))

    if len(order) != len(graph.nodes):
        stuck = [node for node in graph.nodes if remaining[node] > 0]
        raise CyclicDependency(stuck, _find_cycle(graph, stuck))

    return order



def _find_cycle(graph, stuck):
    """ Return one cycle among the *stuck* nodes. Every stuck node has at
        least one stuck predecessor, so walking predecessors from any of
        them must eventually revisit a node.
    """

    stuck = set(stuck)
    start = min(stuck, key=graph.position)

    path = list()
    seen = dict()
    node = start

    while node not in seen:
        seen[node] = len(path)
        path.append(node)

        candidates = [pred for pred in graph.predecessors(node) if pred in stuck]
        node = min(candidates, key=graph.position)

    # The walk went backwards along the edges; reverse it so each element
    # precedes the next.

    cycle = path[seen[node]:]
    cycle.reverse()
    return cycle


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
