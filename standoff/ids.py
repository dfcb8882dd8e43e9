# Author: Eric Kow
# License: BSD3

"""
Tag identifiers

Identifiers are the tag type prefix followed by a counter, eg. `P0`,
`P1`, ... They must be unique across the whole document, whatever the
kind of tag.
"""

import copy
import re

_TID_RE = re.compile(r'^(.*?)(\d+)$')


def tid_sort_key(tid):
    """
    Sort key for identifiers which puts `P2` before `P10`
    """
    match = _TID_RE.match(tid)
    if match is None:
        return (tid, -1)
    return (match.group(1), int(match.group(2)))


class IdAllocator(object):
    """
    Hands out fresh identifiers for each tag type, and keeps track of
    the ones that are already in use (for example because they were
    read in from a file).

    Tag types are identified by name; each knows its own prefix.
    """
    def __init__(self):
        self._used = {}
        self._counters = {}

    def _used_for(self, tag_type):
        return self._used.setdefault(tag_type.name, set())

    def next_id(self, tag_type):
        """
        Return `prefix + counter` for the first counter value that
        has not been used yet, and mark it as used
        """
        used = self._used_for(tag_type)
        counter = self._counters.get(tag_type.name, 0)
        tid = '%s%d' % (tag_type.prefix, counter)
        while tid in used:
            counter += 1
            tid = '%s%d' % (tag_type.prefix, counter)
        used.add(tid)
        self._counters[tag_type.name] = counter + 1
        return tid

    def add_id(self, tag_type, tid):
        """
        Register an identifier chosen elsewhere.

        Return False (and do nothing) if it was already in use
        """
        used = self._used_for(tag_type)
        if tid in used:
            return False
        used.add(tid)
        return True

    def is_used(self, tag_type, tid):
        "True if the identifier has been handed out or registered"
        return tid in self._used.get(tag_type.name, ())

    def reset(self):
        "Forget every identifier"
        self._used = {}
        self._counters = {}

    def copy(self):
        "An independent copy of this allocator"
        return copy.deepcopy(self)
