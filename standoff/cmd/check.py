# Author: Eric Kow
# License: BSD3

"""
Load an annotation file and report any problems with it

Reports the warnings raised while reading the file, and every tag
which leaves a required attribute or argument unset.
"""

import sys

from tabulate import tabulate

from ..store import AnnotationStore, StoreError
from ..tagxml import TagXmlException, is_task_name_matching
from ..util import existing_file

NAME = 'check'


def config_argparser(parser):
    """
    Subcommand flags.

    You should create and pass in the subparser to which the flags
    are to be added.
    """
    parser.add_argument('task', metavar='FILE', type=existing_file,
                        help='task definition (DTD)')
    parser.add_argument('annotations', metavar='FILE', nargs='+',
                        type=existing_file,
                        help='annotation files')
    parser.set_defaults(func=main)


def check_file(store, filename):
    """
    Problems with one annotation file, as a list of strings (empty if
    none)
    """
    problems = []
    if not is_task_name_matching(filename, store.task_name):
        problems.append("not annotated for task %s" % store.task_name)
        return problems
    report = store.read_annotation(filename)
    if report:
        problems.append(report)
    underspec = store.get_all_underspec_tags()
    if underspec:
        rows = [[tid, ', '.join(names)] for tid, names in underspec.items()]
        problems.append(tabulate(rows, headers=['tag', 'missing']))
    return problems


def main(args):
    """
    Subcommand main.

    You shouldn't need to call this yourself if you're using
    `config_argparser`
    """
    store = AnnotationStore()
    store.read_task(args.task)
    clean = True
    for filename in args.annotations:
        try:
            problems = check_file(store, filename)
        except (TagXmlException, StoreError) as err:
            problems = ["cannot be read: %s" % err]
        if problems:
            clean = False
            print("%s:" % filename)
            for problem in problems:
                print(problem)
                print()
        elif getattr(args, 'verbose', 0) > 1:
            print("%s: OK" % filename, file=sys.stderr)
    store.close()
    if not clean:
        sys.exit(1)
