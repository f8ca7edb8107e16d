"""
Unit tests for the exact and tolerant matching passes
"""

import unittest

from gstr2b_recon.columns import ResolvedColumns
from gstr2b_recon.helpers import build_match_key, format_difference
from gstr2b_recon.matching import (STATUS_COLUMN, match_exact, match_records, match_tolerant)
from gstr2b_recon.settings import ReconciliationSettings


BOOKS_COLS = ResolvedColumns(gstin='GSTIN', bill_no='Bill No', legal_name='Party Name',
                             taxable_value='Taxable Value', integrated_tax='IGST',
                             central_tax='CGST', state_tax='SGST', cess='Cess')
GSTR_COLS = ResolvedColumns(gstin='GSTIN of supplier', bill_no='Invoice number',
                            legal_name='Trade/Legal name of the supplier',
                            taxable_value='Taxable Value (₹)', integrated_tax='Integrated Tax(₹)',
                            central_tax='Central Tax(₹)', state_tax='State/UT Tax(₹)',
                            cess='Cess(₹)')


def book(gstin, bill, taxable, igst=0.0, name='Acme Traders'):
    return {'GSTIN': gstin, 'Bill No': bill, 'Party Name': name, 'Taxable Value': taxable,
            'IGST': igst, 'CGST': 0.0, 'SGST': 0.0, 'Cess': 0.0}


def gstr(gstin, bill, taxable, igst=0.0, name='ACME TRADERS'):
    return {'GSTIN of supplier': gstin, 'Invoice number': bill,
            'Trade/Legal name of the supplier': name, 'Taxable Value (₹)': taxable,
            'Integrated Tax(₹)': igst, 'Central Tax(₹)': 0.0, 'State/UT Tax(₹)': 0.0,
            'Cess(₹)': 0.0}


class TestHelpers(unittest.TestCase):

    def test_match_key_strips_all_whitespace(self):
        self.assertEqual(build_match_key(' 27aaa aa ', 'inv 001'), '27AAAAAINV001')
        self.assertEqual(build_match_key('27AAA', 2364.0), '27AAA2364')

    def test_format_difference(self):
        self.assertEqual(format_difference(2.0), '0.00')
        self.assertEqual(format_difference(-1.99), '0.00')
        self.assertEqual(format_difference(2.01), '2.01')
        self.assertEqual(format_difference(-150.456), '-150.46')

    def test_format_difference_rounds_ties_away_from_zero(self):
        self.assertEqual(format_difference(2.125), '2.13')
        self.assertEqual(format_difference(1002.125 - 1000), '2.13')
        self.assertEqual(format_difference(-2.125), '-2.13')
        self.assertEqual(format_difference(10.625), '10.63')


class TestExactMatch(unittest.TestCase):

    def test_identical_keys_match_with_zero_difference(self):
        matched, books_left, pool = match_exact(
            [book('27AAAAA0000A1Z5', 'INV001', 1000.0)],
            [gstr('27AAAAA0000A1Z5', 'INV001', 1000.0)],
            BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(matched), 1)
        self.assertEqual(books_left, [])
        self.assertEqual(pool, [])
        record = matched[0]
        self.assertEqual(record[STATUS_COLUMN], 'Matched')
        self.assertEqual(record['Diff Taxable Value (₹)'], '0.00')
        self.assertEqual(record['GSTR2B_Invoice number'], 'INV001')
        self.assertEqual(record['Bill No'], 'INV001')

    def test_differences_outside_band_are_reported(self):
        matched, _, _ = match_exact(
            [book('A', '1', 1000.0, igst=180.0)],
            [gstr('A', '1', 990.0, igst=177.5)],
            BOOKS_COLS, GSTR_COLS)
        self.assertEqual(matched[0]['Diff Taxable Value (₹)'], '10.00')
        self.assertEqual(matched[0]['Diff Integrated Tax(₹)'], '2.50')
        self.assertEqual(matched[0]['Diff Cess(₹)'], '0.00')

    def test_output_column_order(self):
        matched, _, _ = match_exact([book('A', '1', 1.0)], [gstr('A', '1', 1.0)],
                                    BOOKS_COLS, GSTR_COLS)
        keys = list(matched[0].keys())
        self.assertEqual(keys[:9], list(book('A', '1', 1.0).keys()) + [STATUS_COLUMN])
        self.assertTrue(keys[9].startswith('Diff Taxable'))
        self.assertTrue(all(k.startswith('GSTR2B_') for k in keys[14:]))

    def test_key_ignores_whitespace_and_case(self):
        matched, _, _ = match_exact([book('27aaaaa0000a1z5', 'inv 001', 5.0)],
                                    [gstr('27AAAAA0000A1Z5', 'INV001', 5.0)],
                                    BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(matched), 1)

    def test_gstr2b_record_used_once(self):
        matched, books_left, pool = match_exact(
            [book('A', '1', 5.0), book('A', '1', 5.0)],
            [gstr('A', '1', 5.0)],
            BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(matched), 1)
        self.assertEqual(len(books_left), 1)
        self.assertEqual(pool, [])

    def test_colliding_keys_keep_the_later_gstr2b_record(self):
        matched, books_left, pool = match_exact(
            [book('A', 'INV001', 5.0)],
            [gstr('A', 'INV 001', 5.0), gstr('A', 'INV001', 5.0)],
            BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(matched), 1)
        self.assertEqual(matched[0]['GSTR2B_Invoice number'], 'INV001')
        self.assertEqual(books_left, [])
        self.assertEqual(pool, [])

        outcome = match_records([book('A', 'INV001', 5.0)],
                                [gstr('A', 'INV 001', 5.0), gstr('A', 'INV001', 5.0)],
                                BOOKS_COLS, GSTR_COLS)
        self.assertEqual(outcome.only_in_gstr2b, [])
        self.assertEqual(outcome.partially_matched, [])

    def test_custom_prefix(self):
        settings = ReconciliationSettings(gstr2b_prefix='2B.')
        matched, _, _ = match_exact([book('A', '1', 1.0)], [gstr('A', '1', 1.0)],
                                    BOOKS_COLS, GSTR_COLS, settings)
        self.assertIn('2B.Invoice number', matched[0])


class TestTolerantMatch(unittest.TestCase):

    def test_reformatted_invoice_number_is_partially_matched(self):
        partial, only_books, only_gstr = match_tolerant(
            [book('27AAAAA0000A1Z5', 'INV-001', 1000.0)],
            [gstr('27AAAAA0000A1Z5', 'INV001', 1001.0)],
            BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(partial), 1)
        self.assertEqual(partial[0][STATUS_COLUMN], 'Partially Matched')
        self.assertEqual(list(partial[0].keys())[-1], STATUS_COLUMN)
        self.assertEqual(partial[0]['GSTR2B_Invoice number'], 'INV001')
        self.assertEqual(only_books, [])
        self.assertEqual(only_gstr, [])

    def test_taxable_outside_tolerance_does_not_match(self):
        partial, only_books, only_gstr = match_tolerant(
            [book('A', 'X1', 1000.0)], [gstr('A', 'X-1', 1002.5)], BOOKS_COLS, GSTR_COLS)
        self.assertEqual(partial, [])
        self.assertEqual(only_books[0][STATUS_COLUMN], 'Only in Books')
        self.assertEqual(only_gstr[0][STATUS_COLUMN], 'Only in GSTR-2B')

    def test_gstin_must_match(self):
        partial, _, _ = match_tolerant([book('A', 'X1', 10.0)], [gstr('B', 'X-1', 10.0)],
                                       BOOKS_COLS, GSTR_COLS)
        self.assertEqual(partial, [])

    def test_legal_name_must_agree_when_both_present(self):
        partial, _, _ = match_tolerant([book('A', 'X1', 10.0, name='Acme')],
                                       [gstr('A', 'X-1', 10.0, name='Globex')],
                                       BOOKS_COLS, GSTR_COLS)
        self.assertEqual(partial, [])

    def test_legal_name_ignored_when_column_absent(self):
        no_name_cols = ResolvedColumns(gstin='GSTIN', bill_no='Bill No',
                                       taxable_value='Taxable Value')
        partial, _, _ = match_tolerant([book('A', 'X1', 10.0, name='Acme')],
                                       [gstr('A', 'X-1', 10.0, name='Globex')],
                                       no_name_cols, GSTR_COLS)
        self.assertEqual(len(partial), 1)

    def test_first_fit_not_best_fit(self):
        pool = [gstr('A', 'P1', 1001.9), gstr('A', 'P2', 1000.0)]
        partial, _, only_gstr = match_tolerant([book('A', 'X1', 1000.0)], pool,
                                               BOOKS_COLS, GSTR_COLS)
        self.assertEqual(partial[0]['GSTR2B_Invoice number'], 'P1')
        self.assertEqual([r['Invoice number'] for r in only_gstr], ['P2'])

    def test_pool_argument_is_not_mutated(self):
        pool = [gstr('A', 'P1', 10.0)]
        match_tolerant([book('A', 'X1', 10.0)], pool, BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(pool), 1)


class TestMatchRecords(unittest.TestCase):

    def test_counts_are_conserved(self):
        books = [book('A', '1', 100.0), book('A', '2', 200.0), book('B', '9', 50.0),
                 book('C', '7', -30.0)]
        gstr2b = [gstr('A', '1', 100.0), gstr('A', '2-X', 201.0), gstr('D', '5', 75.0)]
        outcome = match_records(books, gstr2b, BOOKS_COLS, GSTR_COLS)
        self.assertEqual(len(outcome.matched), 1)
        self.assertEqual(len(outcome.partially_matched), 1)
        self.assertEqual(len(outcome.matched) + len(outcome.partially_matched)
                         + len(outcome.only_in_books), len(books))
        self.assertEqual(len(outcome.matched) + len(outcome.partially_matched)
                         + len(outcome.only_in_gstr2b), len(gstr2b))

    def test_exact_match_wins_over_earlier_tolerant_candidate(self):
        books = [book('A', 'X9', 100.0), book('A', '1', 100.0)]
        gstr2b = [gstr('A', '1', 100.0)]
        outcome = match_records(books, gstr2b, BOOKS_COLS, GSTR_COLS)
        self.assertEqual(outcome.matched[0]['Bill No'], '1')
        self.assertEqual(outcome.partially_matched, [])
        self.assertEqual(outcome.only_in_books[0]['Bill No'], 'X9')


if __name__ == '__main__':
    unittest.main()
