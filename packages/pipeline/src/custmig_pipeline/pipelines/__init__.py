"""
custmig_pipeline.pipelines — Migration orchestration.

    migration  — MigrationPipeline, RunReport, run(), build_pipeline()
    supervisor — per-record retry state machine with dead-lettering
    guard      — preflight target connectivity check
    stats      — post-run reconciliation counts
    scheduler  — timer trigger (delay, period, repeat count)

    from custmig_pipeline.pipelines import migration

    report = await migration.run()
"""
