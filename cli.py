#!/usr/bin/env python3
import argparse

from fieldscope.orchestrator import run_once


def main():
    parser = argparse.ArgumentParser(description="Fieldscope CLI: clean, deduplicate and enrich a generated room scope")
    parser.add_argument("--input", required=True, help="Path to rooms JSON (list, or object with rooms/metadata)")
    parser.add_argument("--config", help="Path to YAML config")
    parser.add_argument("--out-dir", dest="out_dir", help="Output directory")
    # job parameters
    parser.add_argument("--severity", type=int, help="Damage severity (1-10)")
    parser.add_argument("--context", choices=["Interior", "Exterior", "Both"], help="Scope context")
    parser.add_argument("--loss-type", dest="loss_type", help="Loss type, e.g. Water, Fire, Mold")
    parser.add_argument("--job-type", dest="job_type", choices=["R", "E"], help="R = reconstruction, E = emergency")
    parser.add_argument("--vocabulary", help="Alternate vocabulary YAML")
    # processing flags
    parser.add_argument("--dedup", dest="dedup_enabled", action="store_true", help="Enable ghost room merging")
    parser.add_argument("--no-dedup", dest="dedup_enabled", action="store_false", help="Disable ghost room merging")
    parser.add_argument("--merge-threshold", dest="merge_threshold", type=float, help="Jaccard merge threshold (0-1)")
    parser.add_argument("--review-threshold", dest="review_threshold", type=float, help="Lower bound of the verify-manually band (0-1)")
    parser.add_argument("--max-passes", dest="max_passes", type=int, help="Merge pass limit")
    parser.add_argument("--logistics", dest="logistics_enabled", action="store_true", help="Enable General Conditions enrichment")
    parser.add_argument("--no-logistics", dest="logistics_enabled", action="store_false", help="Disable General Conditions enrichment")
    parser.add_argument("--audit", dest="audit_enabled", action="store_true", help="Enable gap audit")
    parser.add_argument("--no-audit", dest="audit_enabled", action="store_false", help="Disable gap audit")
    parser.add_argument("--sort-items", dest="sort_items", action="store_true", help="Order items by restoration sequence")
    parser.add_argument("--no-sort-items", dest="sort_items", action="store_false", help="Keep generated item order")
    parser.set_defaults(dedup_enabled=None, logistics_enabled=None, audit_enabled=None, sort_items=None)
    args = parser.parse_args()

    overrides = {
        "out_dir": args.out_dir,
        "severity": args.severity,
        "context": args.context,
        "loss_type": args.loss_type,
        "job_type": args.job_type,
        "vocabulary": args.vocabulary,
        "dedup_enabled": args.dedup_enabled,
        "merge_threshold": args.merge_threshold,
        "review_threshold": args.review_threshold,
        "max_passes": args.max_passes,
        "logistics_enabled": args.logistics_enabled,
        "audit_enabled": args.audit_enabled,
        "sort_items": args.sort_items,
    }

    run_once(args.config, args.input, overrides=overrides)


if __name__ == "__main__":
    main()
