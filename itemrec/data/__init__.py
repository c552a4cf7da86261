from itemrec.data.loader import ItemData, JobData, load_job_data

__all__ = ["ItemData", "JobData", "load_job_data"]
