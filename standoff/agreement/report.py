# Author: Eric Kow
# License: BSD3

"""
Running several agreement measures at once, and showing the results
"""

from collections import OrderedDict
import math

from tabulate import tabulate

from ..corpus import AnnotationIndex
from .cache import ParseCache
from .coding import CODING_METRICS, local_coding_agreement
from .unitizing import global_alpha_u, local_alpha_u

UNITIZING_METRIC = 'alpha_u'
METRICS = list(CODING_METRICS) + [UNITIZING_METRIC]
DEFAULT_METRICS = ['multi_pi', UNITIZING_METRIC]

# pylint: disable=too-many-arguments


def default_targets(schema):
    """
    Every extent tag type with all of its attributes
    """
    return OrderedDict((t.name, t.attribute_names())
                       for t in schema.extent_types())


def compute_agreement(index, schema, targets=None, allow_multi=False,
                      metrics=None, granularity='tag', verbose=False):
    """
    Run the requested agreement measures over the indexed files.

    :param index: the annotation files
    :type index: standoff.corpus.AnnotationIndex

    :param targets: tag type name to attribute names (default: every
        extent tag type and attribute)

    :param metrics: names from `METRICS`; coding metrics give one score
        per tag type and per targeted attribute, `alpha_u` gives one
        score per tag type and a cross-tag score

    :rtype: OrderedDict of metric to (OrderedDict of label to score)
    """
    if targets is None:
        targets = default_targets(schema)
    metrics = metrics or DEFAULT_METRICS
    for metric in metrics:
        if metric not in METRICS:
            raise ValueError("Unknown metric: %s (expected one of %s)" %
                             (metric, ', '.join(METRICS)))
    cache = ParseCache(index, schema, verbose=verbose)
    results = OrderedDict()
    for metric in metrics:
        if metric == UNITIZING_METRIC:
            scores = global_alpha_u(index, cache, targets=list(targets),
                                    allow_multi=allow_multi)
            scores.update(local_alpha_u(index, cache,
                                        targets=list(targets),
                                        allow_multi=allow_multi))
        else:
            scores = local_coding_agreement(index, cache, targets,
                                            allow_multi=allow_multi,
                                            metric=metric,
                                            granularity=granularity)
        results[metric] = scores
    return results


def agreement_in_directory(rootdir, schema, delimiter='_',
                           include_gold=False, **kwargs):
    """
    `compute_agreement` over all the annotation files in a directory
    """
    index = AnnotationIndex.from_directory(rootdir, delimiter=delimiter,
                                           include_gold=include_gold)
    return compute_agreement(index, schema, **kwargs)


def _show_score(score):
    if score is None:
        return ''
    elif math.isnan(score):
        return 'n/a'
    else:
        return '%.4f' % score


def format_report(results, tablefmt='simple'):
    """
    One row per label, one column per metric. Scores that could not be
    computed (for lack of data) are shown as 'n/a'
    """
    labels = []
    for scores in results.values():
        labels.extend(k for k in scores if k not in labels)
    rows = [[label] + [_show_score(results[m].get(label)) for m in results]
            for label in labels]
    return tabulate(rows, headers=['label'] + list(results),
                    tablefmt=tablefmt, disable_numparse=True)
