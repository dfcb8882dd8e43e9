# Author: Eric Kow
# License: BSD3

"""
Command line helpers shared by the standoff-util subcommands
"""

from collections import OrderedDict
import argparse
import os


def add_subcommand(subparsers, module):
    '''
    Add a subcommand to an argparser following some conventions:

        - the module can have an optional NAME constant
          (giving the name of the command); otherwise we
          assume it's the unqualified module name
        - the first line of its docstring is its help text
        - subsequent lines (if any) form its epilog

    Returns the resulting subparser for the module
    '''
    module_name = getattr(module, 'NAME', module.__name__.split('.')[-1])
    doc = (module.__doc__ or '').strip()
    module_help, _, module_epilog = doc.partition('\n')
    return subparsers.add_parser(module_name,
                                 help=module_help,
                                 epilog=module_epilog.strip() or None)


def existing_file(path):
    "argparse type for paths to files that must already exist"
    if not os.path.isfile(path):
        raise argparse.ArgumentTypeError("no such file: %s" % path)
    return path


def existing_dir(path):
    "argparse type for paths to directories that must already exist"
    if not os.path.isdir(path):
        raise argparse.ArgumentTypeError("no such directory: %s" % path)
    return path


def parse_targets(specs):
    """
    Agreement targets from command line strings of the form
    `TAG` (tag only) or `TAG:att1,att2` ::

        parse_targets(['PERSON:role', 'PLACE'])
        == {'PERSON': ['role'], 'PLACE': []}

    Repeated tags accumulate their attributes.
    """
    targets = OrderedDict()
    for spec in specs:
        tag, _, atts = spec.partition(':')
        tag = tag.strip()
        if not tag:
            raise ValueError("Expected TAG or TAG:att,att, got %r" % spec)
        known = targets.setdefault(tag, [])
        for att in atts.split(','):
            att = att.strip()
            if att and att not in known:
                known.append(att)
    return targets
