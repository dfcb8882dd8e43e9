# Author: Eric Kow
# License: BSD3

"""
Inter-annotator agreement over a directory of annotation files

Files should be named <document>_<annotator>.xml (see --delimiter).
Scores that cannot be computed for lack of data are shown as n/a.
"""

import sys

from ..agreement.report import (DEFAULT_METRICS, METRICS,
                                compute_agreement, format_report)
from ..corpus import AnnotationIndex, ANNOTATOR_DELIMITER
from ..dtd import read_dtd_file
from ..util import existing_dir, existing_file, parse_targets

NAME = 'iaa'


def config_argparser(parser):
    """
    Subcommand flags.

    You should create and pass in the subparser to which the flags
    are to be added.
    """
    parser.add_argument('task', metavar='FILE', type=existing_file,
                        help='task definition (DTD)')
    parser.add_argument('corpus', metavar='DIR', type=existing_dir,
                        help='directory of annotation files')
    parser.add_argument('--target', metavar='TAG[:ATT,ATT]',
                        action='append', default=[],
                        help='tag type (and attributes) to measure; '
                        'may be repeated (default: everything)')
    parser.add_argument('--metric', choices=METRICS,
                        action='append', default=[],
                        help='agreement measure; may be repeated '
                        '(default: %s)' % ', '.join(DEFAULT_METRICS))
    parser.add_argument('--allow-multi', action='store_true',
                        help='allow several tags on one unit')
    parser.add_argument('--granularity', choices=['tag', 'char'],
                        default='tag',
                        help='coding units: tag positions or characters')
    parser.add_argument('--delimiter', default=ANNOTATOR_DELIMITER,
                        help='separates document and annotator in file '
                        'names (default: %(default)s)')
    parser.add_argument('--include-gold', action='store_true',
                        help='count adjudicated files as an annotator')
    parser.set_defaults(func=main)


def main(args):
    """
    Subcommand main.

    You shouldn't need to call this yourself if you're using
    `config_argparser`
    """
    verbose = getattr(args, 'verbose', 0) > 1
    schema = read_dtd_file(args.task)
    index = AnnotationIndex.from_directory(args.corpus,
                                           delimiter=args.delimiter,
                                           include_gold=args.include_gold)
    if len(index.annotators) < 2:
        sys.exit("Need at least two annotators, found: %s" %
                 (', '.join(index.annotators) or 'none'))
    targets = parse_targets(args.target) if args.target else None
    if verbose:
        print("Annotators: %s" % ', '.join(index.annotators),
              file=sys.stderr)
        print("Documents: %d" % len(index.documents), file=sys.stderr)
    results = compute_agreement(index, schema,
                                targets=targets,
                                allow_multi=args.allow_multi,
                                metrics=args.metric or None,
                                granularity=args.granularity,
                                verbose=verbose)
    print(format_report(results))
